from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from ecosort_pipeline.ep_types import DetectionSnapshot

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class DetectionStateTracker:
    """
    Freshness tracking over successive detection snapshots.

    A single empty frame never clears the overlay. The published detections
    are only auto-reset once no object has been seen for longer than
    ``stale_after_ms`` AND more than ``reset_min_frames`` empty frames were
    processed since the last detection.
    """

    def __init__(
        self,
        stale_after_ms: float = 5000.0,
        reset_min_frames: int = 50,
        on_reset: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.stale_after_ms = stale_after_ms
        self.reset_min_frames = reset_min_frames
        self.on_reset = on_reset
        self._clock = clock
        self._lock = threading.Lock()
        self.last_detection_ms: Optional[float] = None
        self.frames_since_detection = 0

    def update(self, snapshot: DetectionSnapshot) -> bool:
        """Fold one snapshot into the state. Returns True if an auto-reset fired."""
        now = snapshot.captured_at_ms
        with self._lock:
            if snapshot.has_objects:
                self.last_detection_ms = now
                self.frames_since_detection = 0
                return False

            self.frames_since_detection += 1
            if not (self._elapsed(now) > self.stale_after_ms
                    and self.frames_since_detection > self.reset_min_frames):
                return False

            self.frames_since_detection = 0

        logger.debug("no detections for %.0f ms, clearing overlay", self.stale_after_ms)
        if self.on_reset is not None:
            self.on_reset()
        return True

    def reset(self) -> None:
        """Manual reset: clear state regardless of thresholds."""
        with self._lock:
            self.last_detection_ms = None
            self.frames_since_detection = 0
        if self.on_reset is not None:
            self.on_reset()

    def is_stale(self, now_ms: Optional[float] = None) -> bool:
        if now_ms is None:
            now_ms = self._clock()
        return self._elapsed(now_ms) > self.stale_after_ms

    def _elapsed(self, now_ms: float) -> float:
        if self.last_detection_ms is None:
            return float("inf")
        return now_ms - self.last_detection_ms
