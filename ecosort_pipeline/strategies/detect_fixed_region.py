import logging
from concurrent.futures import Future

from ..ep_types import DetectedObject, Frame, Label, Rect, rotated_dims
from ..errors import DetectorNotReadyError
from .detector_base import ObjectDetector, completed

logger = logging.getLogger(__name__)


class FixedRegionDetector(ObjectDetector):
    """
    Simplified backend: reports one object covering the centre half of the
    upright frame. Useful on devices without a model and for dry runs.
    """

    LABEL = Label("Object", 0.85, 0)

    def __init__(self):
        self._ready = False

    def initialize(self) -> None:
        self._ready = True
        logger.debug("fixed-region detector initialized")

    def detect_objects(self, frame: Frame, rotation_degrees: int) -> "Future[list[DetectedObject]]":
        if not self._ready:
            raise DetectorNotReadyError("fixed-region detector not initialized")

        w, h = rotated_dims(frame.width, frame.height, rotation_degrees)
        cx, cy = w // 2, h // 2
        bw, bh = w // 2, h // 2
        box = Rect(cx - bw // 2, cy - bh // 2, cx + bw // 2, cy + bh // 2)
        return completed([DetectedObject(box, tracking_id=1, labels=(self.LABEL,))])

    def stop(self) -> None:
        self._ready = False

    def is_ready(self) -> bool:
        return self._ready
