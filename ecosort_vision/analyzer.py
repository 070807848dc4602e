from __future__ import annotations

import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, replace
from typing import Callable, Optional

from ecosort_pipeline.ep_types import (
    CaptureImage,
    DetectionSnapshot,
    Frame,
    rotated_dims,
)
from ecosort_pipeline.errors import DetectorNotReadyError
from ecosort_pipeline.strategies.detector_base import ObjectDetector

from .crop import downscale_to_fit
from .state_tracker import monotonic_ms

SnapshotListener = Callable[[DetectionSnapshot], None]


@dataclass(frozen=True)
class PipelineState:
    snapshot: Optional[DetectionSnapshot] = None
    capture_image: Optional[CaptureImage] = None


@dataclass
class AnalyzerStats:
    submitted: int = 0
    analyzed: int = 0
    dropped: int = 0
    failed: int = 0
    detections: int = 0


class FrameAnalyzer:
    """
    Per-frame orchestration on one dedicated worker thread.

    Frames are handed over with ``submit()``. Only the most recent frame is
    kept: a frame still waiting when a newer one arrives is closed without
    being analyzed. Every frame is closed exactly once, whatever the outcome.
    """

    def __init__(
        self,
        detector: ObjectDetector,
        logger: Optional[logging.Logger] = None,
        max_bitmap_dim: Optional[int] = 1920,
        detect_timeout_s: Optional[float] = 2.0,
        clock: Callable[[], float] = monotonic_ms,
        listeners: Optional[list[SnapshotListener]] = None,
    ):
        self.detector = detector
        self.logger = logger or logging.getLogger(__name__)
        self.max_bitmap_dim = max_bitmap_dim
        self.detect_timeout_s = detect_timeout_s
        self.listeners: list[SnapshotListener] = list(listeners or [])
        self.stats = AnalyzerStats()
        self.max_in_flight = 0

        self._clock = clock
        self._state = PipelineState()
        self._write_lock = threading.Lock()
        self._cond = threading.Condition()
        self._pending: Optional[Frame] = None
        self._in_flight = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def snapshot(self) -> Optional[DetectionSnapshot]:
        return self._state.snapshot

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="frame-analyzer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        with self._cond:
            self._cond.notify_all()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

        with self._cond:
            pending, self._pending = self._pending, None
        if pending is not None:
            pending.close()
            self._count(dropped=1)

        with self._write_lock:
            image = self._state.capture_image
            self._state = replace(self._state, capture_image=None)
        if image is not None:
            image.release()

    def submit(self, frame: Frame) -> bool:
        self._count(submitted=1)
        if self._stop_event.is_set() or not self.is_running():
            frame.close()
            self._count(dropped=1)
            return False

        with self._cond:
            superseded, self._pending = self._pending, frame
            self._cond.notify()
        if superseded is not None:
            self.logger.debug("dropping frame=%d, superseded by frame=%d", superseded.idx, frame.idx)
            superseded.close()
            self._count(dropped=1)
        return True

    def _count(self, **deltas: int) -> None:
        with self._cond:
            for name, n in deltas.items():
                setattr(self.stats, name, getattr(self.stats, name) + n)

    def clear_detections(self) -> None:
        with self._write_lock:
            snap = self._state.snapshot
            if snap is not None:
                self._state = replace(self._state, snapshot=snap.empty())

    def _run(self) -> None:
        while True:
            with self._cond:
                while self._pending is None and not self._stop_event.is_set():
                    self._cond.wait()
                if self._stop_event.is_set():
                    break
                frame, self._pending = self._pending, None
                self._in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self._in_flight)

            try:
                self.analyze(frame)
            except Exception as exc:
                self._count(failed=1)
                self.logger.error("analysis of frame=%d failed: %s", frame.idx, exc)
            finally:
                with self._cond:
                    self._in_flight -= 1

    def analyze(self, frame: Frame) -> Optional[DetectionSnapshot]:
        """Analyze one frame synchronously and publish its snapshot."""
        try:
            rotation = frame.rotation_degrees
            fw, fh = rotated_dims(frame.width, frame.height, rotation)

            pixels = downscale_to_fit(frame.image, self.max_bitmap_dim)
            if pixels is frame.image:
                pixels = pixels.copy()
            capture = CaptureImage(pixels)

            try:
                future = self.detector.detect_objects(frame, rotation)
            except DetectorNotReadyError as exc:
                self._count(failed=1)
                self.logger.error("detector not ready, frame=%d skipped: %s", frame.idx, exc)
                return None

            try:
                objects = future.result(timeout=self.detect_timeout_s)
            except FutureTimeout:
                future.cancel()
                self._count(failed=1)
                self.logger.warning("detector timed out after %.2fs on frame=%d", self.detect_timeout_s, frame.idx)
                objects = []
            except Exception as exc:
                self._count(failed=1)
                self.logger.warning("detector failed on frame=%d: %s", frame.idx, exc)
                objects = []

            valid = tuple(o for o in objects if o.is_valid())
            snapshot = DetectionSnapshot(valid, fw, fh, rotation, self._clock())
            with self._write_lock:
                self._state = PipelineState(snapshot, capture)

            self._count(analyzed=1, detections=len(valid))
            self.logger.debug("frame=%d %dx%d rot=%d dets=%d", frame.idx, fw, fh, rotation, len(valid))

            for listener in self.listeners:
                try:
                    listener(snapshot)
                except Exception as exc:
                    self.logger.warning("snapshot listener failed: %s", exc)
            return snapshot
        finally:
            frame.close()
