from enum import Enum


class InitializationError(RuntimeError):
    """Detector backend could not be prepared (missing model, load failure)."""


class DetectorNotReadyError(RuntimeError):
    """detect_objects() called before initialize() or after stop()."""


class CropError(Exception):
    pass


class RecycledSourceError(CropError):
    pass


class DegenerateCropError(CropError):
    pass


class OutOfBoundsError(CropError):
    pass


class CaptureError(Exception):
    """Base for failures surfaced to the user when capturing."""


class NotReadyError(CaptureError):
    pass


class NoCandidateReason(str, Enum):
    STALE = "stale"
    NOT_PROMINENT = "not_prominent"


class NoCandidateError(CaptureError):
    def __init__(self, reason: NoCandidateReason, message: str | None = None):
        self.reason = reason
        if message is None:
            if reason is NoCandidateReason.STALE:
                message = "No object detected recently. Point the camera at an item."
            else:
                message = "No object large or centered enough. Move closer and center the item."
        super().__init__(message)


class ExportError(CaptureError):
    pass
