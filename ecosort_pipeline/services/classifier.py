"""Handoff to the downstream waste classifier.

The classifier itself is an external service. This module only defines the
contract, parses its structured reply and throttles background submissions
so they never block frame analysis.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

FAILED_LABEL = "Classification Failed"


@dataclass
class ClassificationResult:
    item_name: str
    category: str = "OTHER"
    bin_color: str = "Black"
    bin_type: str = "General Waste"
    is_recyclable: bool = False
    confidence: float = 0.0
    raw: dict[str, Any] = field(default_factory=dict)


def _strip_fences(text: str) -> str:
    s = text.strip()
    if s.startswith("```json"):
        s = s[len("```json"):]
    elif s.startswith("```"):
        s = s[3:]
    if s.endswith("```"):
        s = s[:-3]
    return s.strip()


def parse_classification(text: str, fallback_label: str) -> ClassificationResult:
    try:
        data = json.loads(_strip_fences(text or ""))
    except ValueError:
        logger.warning("classifier reply is not JSON, using fallback label %r", fallback_label)
        return ClassificationResult(item_name=fallback_label)
    if not isinstance(data, dict):
        return ClassificationResult(item_name=fallback_label)

    try:
        confidence = float(data.get("confidence", 0.0))
    except (TypeError, ValueError):
        confidence = 0.0

    return ClassificationResult(
        item_name=str(data.get("itemName") or fallback_label),
        category=str(data.get("category", "OTHER")),
        bin_color=str(data.get("binColor", "Black")),
        bin_type=str(data.get("binType", "General Waste")),
        is_recyclable=bool(data.get("isRecyclable", False)),
        confidence=confidence,
        raw=data,
    )


class Classifier(ABC):
    @abstractmethod
    def classify(self, image_path: str, fallback_label: str) -> ClassificationResult: ...


class LabelEchoClassifier(Classifier):
    """Offline stand-in that trusts the detector's label."""

    def classify(self, image_path: str, fallback_label: str) -> ClassificationResult:
        return ClassificationResult(item_name=fallback_label)


def discard(image_path: str) -> None:
    try:
        Path(image_path).unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("could not remove %s: %s", image_path, exc)


ResultCallback = Callable[[str, ClassificationResult], None]


class ClassificationDispatcher:
    def __init__(
        self,
        classifier: Classifier,
        min_interval_ms: float = 1500.0,
        on_result: Optional[ResultCallback] = None,
        clock: Callable[[], float] = lambda: time.monotonic() * 1000.0,
        discard_images: bool = False,
    ):
        self.classifier = classifier
        self.min_interval_ms = min_interval_ms
        self.on_result = on_result
        self._clock = clock
        self.discard_images = discard_images
        self._last_call_ms: Optional[float] = None
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="classify"
        )

    def ready(self) -> bool:
        """True when the throttle window has elapsed."""
        if self._executor is None:
            return False
        last = self._last_call_ms
        return last is None or self._clock() - last >= self.min_interval_ms

    def submit(self, image_path: str, fallback_label: str, box_key: str) -> Optional[Future]:
        """Queue a classification if the throttle allows it; never blocks."""
        with self._lock:
            if not self.ready():
                return None
            self._last_call_ms = self._clock()
            executor = self._executor
        return executor.submit(self._run, image_path, fallback_label, box_key)

    def _run(self, image_path: str, fallback_label: str, box_key: str) -> ClassificationResult:
        try:
            result = self.classifier.classify(image_path, fallback_label)
        except Exception as exc:
            logger.error("classification call failed for %s: %s", box_key, exc)
            result = ClassificationResult(item_name=FAILED_LABEL)
        finally:
            if self.discard_images:
                discard(image_path)
        if self.on_result is not None:
            try:
                self.on_result(box_key, result)
            except Exception as exc:
                logger.warning("classification callback failed: %s", exc)
        return result

    def shutdown(self) -> None:
        executor = self._executor
        self._executor = None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
