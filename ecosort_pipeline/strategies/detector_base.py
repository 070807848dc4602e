from abc import ABC, abstractmethod
from concurrent.futures import Future

from ..ep_types import DetectedObject, Frame


class ObjectDetector(ABC):
    """
    Strategy: detect objects in a camera frame.

    Backends are interchangeable; the pipeline only relies on this contract.
    Boxes are reported in rotation-corrected coordinates, as if the frame had
    been turned upright by rotation_degrees.
    A backend failure during detection completes the future with an empty
    list. Calling detect_objects() on a detector that is not ready raises
    DetectorNotReadyError.
    """

    @abstractmethod
    def initialize(self) -> None: ...

    @abstractmethod
    def detect_objects(self, frame: Frame, rotation_degrees: int) -> "Future[list[DetectedObject]]": ...

    @abstractmethod
    def stop(self) -> None: ...

    @abstractmethod
    def is_ready(self) -> bool: ...


def completed(result: list[DetectedObject]) -> "Future[list[DetectedObject]]":
    fut: Future = Future()
    fut.set_result(result)
    return fut
