from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ecosort_pipeline.errors import CaptureError

from .capture import BaseCapture, SyntheticCapture, USBOpenCVCapture
from .config import PipelineConfig
from .logging_utils import add_file_handler
from .pipeline import CapturePipeline


@dataclass
class SessionSummary:
    frames_submitted: int
    frames_analyzed: int
    frames_dropped: int
    detections: int
    capture_path: Optional[str]
    avg_fps: float
    errors: int
    log_path: str


class CaptureWorker:
    """Feeds a frame source into a CapturePipeline for one session."""

    def __init__(
        self,
        config: PipelineConfig,
        pipeline: Optional[CapturePipeline] = None,
        capture: Optional[BaseCapture] = None,
    ):
        self.config = config
        self.pipeline = pipeline or CapturePipeline(config)
        self.logger = self.pipeline.logger
        self.capture = capture
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticCapture(
                self.config.fps, self.config.width, self.config.height, self.config.rotation_degrees
            )
        return USBOpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
            self.config.rotation_degrees,
        )

    def run(self, capture_at_end: bool = False) -> SessionSummary:
        session_dir = self.pipeline.storage.begin()
        log_file = str(Path(session_dir) / "session.log")
        handler = add_file_handler(self.logger, self.config.pipeline_name, log_file)
        try:
            return self._run(capture_at_end, session_dir, log_file)
        finally:
            self.logger.removeHandler(handler)
            handler.close()

    def _run(self, capture_at_end: bool, session_dir: str, log_file: str) -> SessionSummary:
        self.logger.info("session started: %s", session_dir)
        self.logger.info("config: %s", self.config.as_dict())
        if not self.pipeline.start():
            raise RuntimeError(f"detector unavailable: {self.pipeline.init_error}")

        cap = self._build_capture()
        cap.start()
        t0 = time.time()
        frames = 0
        errors = 0
        capture_path = None

        try:
            while True:
                if self._stop_event.is_set():
                    break
                if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                if self.config.max_frames and frames >= self.config.max_frames:
                    break

                f = cap.next_frame()
                if f is None:
                    errors += 1
                    continue
                self.pipeline.submit_frame(f)
                frames += 1

            if capture_at_end:
                # let the last submitted frame finish analysis
                time.sleep(min(1.0, self.config.detect_timeout_s or 1.0))
                try:
                    outcome = self.pipeline.capture()
                    capture_path = outcome.path
                    result = self.pipeline.classify_capture(outcome)
                    self.logger.info("capture %s -> %s (%s)", outcome.path, result.item_name, result.category)
                except CaptureError as exc:
                    self.logger.warning("capture failed: %s", exc)
        finally:
            try:
                cap.stop()
            except Exception as exc:
                self.logger.warning("frame source stop failed: %s", exc)
            self.pipeline.stop()

        stats = self.pipeline.analyzer.stats
        avg = frames / max(1e-6, (time.time() - t0))
        self.logger.info(
            "summary frames=%d analyzed=%d dropped=%d avg_fps=%.2f errors=%d",
            frames, stats.analyzed, stats.dropped, avg, errors,
        )
        return SessionSummary(
            frames,
            stats.analyzed,
            stats.dropped,
            stats.detections,
            capture_path,
            avg,
            errors + stats.failed,
            log_file,
        )
