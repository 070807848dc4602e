"""MobileNet-SSD backend using the OpenCV DNN module.

Runs a Caffe MobileNet-SSD network on a backend-owned worker thread and keeps
tracking ids stable across frames by greedy IoU matching. The frame is turned
upright first, so boxes come back in rotation-corrected coordinates.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from ..ep_types import DetectedObject, Frame, Label, Rect, upright_image
from ..errors import DetectorNotReadyError, InitializationError
from .detector_base import ObjectDetector

logger = logging.getLogger(__name__)

# PASCAL VOC classes the public MobileNet-SSD weights were trained on
VOC_CLASSES = (
    "background", "aeroplane", "bicycle", "bird", "boat",
    "bottle", "bus", "car", "cat", "chair", "cow", "diningtable",
    "dog", "horse", "motorbike", "person", "pottedplant", "sheep",
    "sofa", "train", "tvmonitor",
)

INPUT_SIZE = 300


def match_tracks(
    boxes: list[Rect],
    previous: dict[int, Rect],
    next_id: int,
    iou_threshold: float,
) -> tuple[list[int], int]:
    """Assign a tracking id to each box.

    Each previous track is matched at most once, best IoU first. Unmatched
    boxes get fresh ids starting at ``next_id``.
    """
    pairs = []
    for i, box in enumerate(boxes):
        for tid, prev in previous.items():
            iou = box.iou(prev)
            if iou >= iou_threshold:
                pairs.append((iou, i, tid))
    pairs.sort(key=lambda p: p[0], reverse=True)

    ids: list[Optional[int]] = [None] * len(boxes)
    used = set()
    for _iou, i, tid in pairs:
        if ids[i] is not None or tid in used:
            continue
        ids[i] = tid
        used.add(tid)

    out = []
    for tid in ids:
        if tid is None:
            tid = next_id
            next_id += 1
        out.append(tid)
    return out, next_id


class MobileNetSSDDetector(ObjectDetector):
    def __init__(
        self,
        prototxt_path: str,
        model_path: str,
        confidence_threshold: float = 0.5,
        iou_threshold: float = 0.3,
        class_names: tuple[str, ...] = VOC_CLASSES,
    ):
        self.prototxt_path = prototxt_path
        self.model_path = model_path
        self.confidence_threshold = confidence_threshold
        self.iou_threshold = iou_threshold
        self.class_names = class_names

        self._net = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._tracks: dict[int, Rect] = {}
        self._next_id = 1

    def initialize(self) -> None:
        self.stop()

        for p in (self.prototxt_path, self.model_path):
            if not p or not Path(p).exists():
                raise InitializationError(f"MobileNet-SSD model file not found: {p}")

        try:
            net = cv2.dnn.readNetFromCaffe(str(self.prototxt_path), str(self.model_path))
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)
        except cv2.error as exc:
            raise InitializationError(f"Failed to load MobileNet-SSD: {exc}") from exc

        self._net = net
        self._tracks = {}
        self._next_id = 1
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ssd-detect")
        logger.info("MobileNet-SSD detector initialized (%s)", self.model_path)

    def detect_objects(self, frame: Frame, rotation_degrees: int) -> "Future[list[DetectedObject]]":
        executor = self._executor
        if self._net is None or executor is None:
            raise DetectorNotReadyError("MobileNet-SSD detector not initialized")
        return executor.submit(self._detect_safe, frame.image, rotation_degrees)

    def _detect_safe(self, image: np.ndarray, rotation_degrees: int) -> list[DetectedObject]:
        try:
            return self._detect(upright_image(image, rotation_degrees))
        except Exception as exc:
            logger.warning("detection failed (rotation=%d): %s", rotation_degrees, exc)
            return []

    def _detect(self, image: np.ndarray) -> list[DetectedObject]:
        net = self._net
        if net is None:
            return []

        h, w = image.shape[:2]
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

        blob = cv2.dnn.blobFromImage(
            image,
            scalefactor=0.007843,
            size=(INPUT_SIZE, INPUT_SIZE),
            mean=(127.5, 127.5, 127.5),
            swapRB=False,
            crop=False,
        )
        net.setInput(blob)
        detections = net.forward()

        boxes: list[Rect] = []
        labels: list[Label] = []
        for i in range(detections.shape[2]):
            confidence = float(detections[0, 0, i, 2])
            if confidence < self.confidence_threshold:
                continue
            class_id = int(detections[0, 0, i, 1])
            if class_id <= 0 or class_id >= len(self.class_names):
                continue

            x1, y1, x2, y2 = (detections[0, 0, i, 3:7] * np.array([w, h, w, h])).tolist()
            box = Rect(max(0.0, x1), max(0.0, y1), min(float(w), x2), min(float(h), y2))
            if not box.is_valid():
                continue
            boxes.append(box)
            labels.append(Label(self.class_names[class_id].title(), confidence, class_id))

        ids, self._next_id = match_tracks(boxes, self._tracks, self._next_id, self.iou_threshold)
        self._tracks = dict(zip(ids, boxes))

        return [
            DetectedObject(box, tracking_id=tid, labels=(label,))
            for box, tid, label in zip(boxes, ids, labels)
        ]

    def stop(self) -> None:
        executor = self._executor
        self._executor = None
        self._net = None
        if executor is not None:
            try:
                executor.shutdown(wait=False, cancel_futures=True)
            except Exception as exc:
                logger.error("error stopping detector executor: %s", exc)
            logger.info("MobileNet-SSD detector stopped")

    def is_ready(self) -> bool:
        return self._net is not None and self._executor is not None
