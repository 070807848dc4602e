from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import cv2

from ecosort_pipeline.ep_types import CaptureCandidate, DetectionSnapshot, Frame
from ecosort_pipeline.errors import (
    CropError,
    ExportError,
    InitializationError,
    NoCandidateError,
    NotReadyError,
    RecycledSourceError,
)
from ecosort_pipeline.factory import DetectorFactory
from ecosort_pipeline.services.classifier import (
    FAILED_LABEL,
    ClassificationDispatcher,
    ClassificationResult,
    Classifier,
    discard,
)
from ecosort_pipeline.services.storage import CaptureStorage
from ecosort_pipeline.strategies.detector_base import ObjectDetector

from .analyzer import FrameAnalyzer
from .config import PipelineConfig
from .crop import CropExtractor, downscale_to_fit
from .logging_utils import setup_logger
from .overlay import render_overlay
from .selector import CandidateSelector
from .state_tracker import DetectionStateTracker, monotonic_ms

FALLBACK_LABEL = "Unclassified Item"


@dataclass
class CaptureOutcome:
    path: str
    label: str
    cropped: bool
    candidate: Optional[CaptureCandidate] = None


class CapturePipeline:
    """
    Live detection plus on-demand capture.

    ``start()``/``stop()`` bracket a lifecycle; ``start()`` after ``stop()``
    resumes it. A detector that fails to initialize disables capture until
    the next successful ``start()`` but is not fatal.
    """

    def __init__(
        self,
        config: PipelineConfig,
        detector: Optional[ObjectDetector] = None,
        logger: Optional[logging.Logger] = None,
        storage: Optional[CaptureStorage] = None,
        classifier: Optional[Classifier] = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.pipeline_name)
        self.detector = detector or DetectorFactory.from_config(config)
        self.storage = storage or CaptureStorage(config.output_dir)
        self.classifier = classifier
        self._clock = clock

        self.selector = CandidateSelector(config.display_area_pct, config.capture_area_pct)
        self.cropper = CropExtractor(config.crop_padding, config.max_bitmap_dim)
        self.analyzer = FrameAnalyzer(
            self.detector,
            logger=self.logger,
            max_bitmap_dim=config.max_bitmap_dim,
            detect_timeout_s=config.detect_timeout_s,
            clock=clock,
        )
        self.tracker = DetectionStateTracker(
            config.stale_after_ms,
            config.reset_min_frames,
            on_reset=self.analyzer.clear_detections,
            clock=clock,
        )
        self.analyzer.listeners.append(self.tracker.update)
        self.analyzer.listeners.append(self._maybe_classify)

        self.dispatcher: Optional[ClassificationDispatcher] = None
        self.final_labels: dict[str, str] = {}
        self.capture_enabled = False
        self.init_error: Optional[InitializationError] = None

    @property
    def snapshot(self) -> Optional[DetectionSnapshot]:
        return self.analyzer.snapshot

    def start(self) -> bool:
        try:
            self.detector.initialize()
        except InitializationError as exc:
            self.init_error = exc
            self.capture_enabled = False
            self.logger.error("detector initialization failed, capture disabled: %s", exc)
            return False

        self.init_error = None
        if self.classifier is not None and self.dispatcher is None:
            self.dispatcher = ClassificationDispatcher(
                self.classifier,
                self.config.classify_interval_ms,
                on_result=self._on_classified,
                clock=self._clock,
                discard_images=True,
            )
        self.analyzer.start()
        self.capture_enabled = True
        self.logger.info("pipeline started (detector=%s)", type(self.detector).__name__)
        return True

    def submit_frame(self, frame: Frame) -> bool:
        return self.analyzer.submit(frame)

    def reset(self) -> None:
        self.tracker.reset()
        self.final_labels.clear()

    def capture(self) -> CaptureOutcome:
        if not self.capture_enabled or not self.detector.is_ready():
            raise NotReadyError("Detector not ready. Wait a moment.")

        state = self.analyzer.state
        snap = state.snapshot
        image = state.capture_image
        if snap is None or image is None or snap.frame_width <= 0 or snap.frame_height <= 0:
            raise NotReadyError("Camera buffer empty. Wait a moment.")

        candidate = self.selector.select(snap, stale=self.tracker.is_stale())
        label = candidate.obj.primary_label(FALLBACK_LABEL)

        cropped = True
        try:
            export = self.cropper.extract(
                image,
                candidate.obj.bounding_box,
                snap.frame_width,
                snap.frame_height,
                snap.rotation_degrees,
            ).image
        except CropError as exc:
            self.logger.warning("crop failed (%s), exporting full frame", exc)
            cropped = False
            try:
                export = downscale_to_fit(image.pixels, self.config.max_bitmap_dim)
            except RecycledSourceError as exc2:
                raise ExportError("Failed to capture object image.") from exc2

        try:
            path = self.storage.save_image(export, prefix="capture")
        except (OSError, cv2.error) as exc:
            raise ExportError("Failed to capture object image.") from exc

        self.logger.info("captured %s label=%r cropped=%s score=%.2f", path, label, cropped, candidate.score)
        return CaptureOutcome(path, label, cropped, candidate)

    def classify_capture(self, outcome: CaptureOutcome) -> ClassificationResult:
        if self.classifier is None:
            return ClassificationResult(item_name=outcome.label)
        try:
            return self.classifier.classify(outcome.path, outcome.label)
        except Exception as exc:
            self.logger.error("classification failed for %s: %s", outcome.path, exc)
            return ClassificationResult(item_name=FAILED_LABEL)

    def overlay_commands(self, view_width: int, view_height: int, global_message: Optional[str] = None) -> list:
        snap = self.analyzer.snapshot
        if snap is None:
            return render_overlay([], 0, 0, view_width, view_height, self.config.overlay, global_message=global_message)
        return render_overlay(
            self.selector.display_results(snap),
            snap.frame_width,
            snap.frame_height,
            view_width,
            view_height,
            self.config.overlay,
            final_labels=self.final_labels,
            global_message=global_message,
        )

    def stop(self) -> None:
        self.capture_enabled = False
        try:
            self.detector.stop()
        except Exception as exc:
            self.logger.warning("detector stop failed: %s", exc)
        self.analyzer.stop()
        if self.dispatcher is not None:
            self.dispatcher.shutdown()
            self.dispatcher = None

    def _maybe_classify(self, snapshot: DetectionSnapshot) -> None:
        dispatcher = self.dispatcher
        if dispatcher is None or not snapshot.has_objects or not dispatcher.ready():
            return
        try:
            candidate = self.selector.select(snapshot)
        except NoCandidateError:
            return
        image = self.analyzer.state.capture_image
        if image is None:
            return
        box = candidate.obj.bounding_box
        try:
            crop = self.cropper.extract(
                image, box, snapshot.frame_width, snapshot.frame_height, snapshot.rotation_degrees
            )
        except CropError as exc:
            self.logger.debug("skipping background classification: %s", exc)
            return
        path = self.storage.save_image(crop.image, prefix="classify")
        if dispatcher.submit(path, candidate.obj.primary_label("Object"), box.key()) is None:
            discard(path)

    def _on_classified(self, box_key: str, result: ClassificationResult) -> None:
        self.final_labels[box_key] = result.item_name
        self.logger.info("classification for %s: %s", box_key, result.item_name)
