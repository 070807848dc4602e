from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional

import numpy as np

from .errors import RecycledSourceError

VALID_ROTATIONS = (0, 90, 180, 270)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixel coordinates (float edges)."""

    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "Rect":
        return cls(float(x), float(y), float(x + w), float(y + h))

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        if not self.is_valid():
            return 0.0
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return ((self.left + self.right) / 2.0, (self.top + self.bottom) / 2.0)

    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    def clamp(self, width: float, height: float) -> "Rect":
        return Rect(
            min(max(self.left, 0.0), width),
            min(max(self.top, 0.0), height),
            min(max(self.right, 0.0), width),
            min(max(self.bottom, 0.0), height),
        )

    def expand(self, pad_x: float, pad_y: float) -> "Rect":
        return Rect(self.left - pad_x, self.top - pad_y, self.right + pad_x, self.bottom + pad_y)

    def iou(self, other: "Rect") -> float:
        ix = max(0.0, min(self.right, other.right) - max(self.left, other.left))
        iy = max(0.0, min(self.bottom, other.bottom) - max(self.top, other.top))
        inter = ix * iy
        union = self.area + other.area - inter
        if union <= 0:
            return 0.0
        return inter / union

    def to_int(self) -> tuple[int, int, int, int]:
        """Integer (left, top, right, bottom), rounded outward to whole pixels."""
        # round first so float noise (89.9999999) does not grow the box
        return (
            int(math.floor(round(self.left, 6))),
            int(math.floor(round(self.top, 6))),
            int(math.ceil(round(self.right, 6))),
            int(math.ceil(round(self.bottom, 6))),
        )

    def key(self) -> str:
        return f"Rect({self.left:.1f}, {self.top:.1f}, {self.right:.1f}, {self.bottom:.1f})"


@dataclass(frozen=True)
class Label:
    text: str
    confidence: float
    category_index: int = 0


@dataclass(frozen=True)
class DetectedObject:
    bounding_box: Rect
    tracking_id: Optional[int] = None
    labels: tuple[Label, ...] = ()

    def is_valid(self) -> bool:
        return self.bounding_box.is_valid()

    def primary_label(self, fallback: str = "Object Detected") -> str:
        if self.labels:
            return self.labels[0].text
        return fallback

    @property
    def confidence(self) -> float:
        return self.labels[0].confidence if self.labels else 0.0


class Frame:
    """One camera image in raw sensor orientation.

    The caller that receives a frame owns the obligation to ``close()`` it.
    ``on_close`` lets the producing source observe the release.
    """

    def __init__(
        self,
        idx: int,
        ts_iso: str,
        image: Any,
        rotation_degrees: int = 0,
        on_close: Optional[Callable[["Frame"], None]] = None,
    ):
        if rotation_degrees not in VALID_ROTATIONS:
            raise ValueError(f"rotation_degrees must be one of {VALID_ROTATIONS}, got {rotation_degrees}")
        self.idx = idx
        self.ts_iso = ts_iso
        self.image = image
        self.rotation_degrees = rotation_degrees
        self._on_close = on_close
        self._closed = False

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close(self)

    def __repr__(self) -> str:
        return f"Frame(idx={self.idx}, {self.width}x{self.height}, rot={self.rotation_degrees})"


def rotated_dims(width: int, height: int, rotation_degrees: int) -> tuple[int, int]:
    """Width/height as seen upright: axes swap for 90 and 270."""
    if rotation_degrees in (90, 270):
        return height, width
    return width, height


def upright_image(image: np.ndarray, rotation_degrees: int) -> np.ndarray:
    """Sensor image turned into analysis orientation.

    90 turns clockwise and 270 counter-clockwise. 0 and 180 are returned
    as-is: those map to the capture bitmap by plain scaling.
    """
    if rotation_degrees == 90:
        return np.ascontiguousarray(np.rot90(image, k=-1))
    if rotation_degrees == 270:
        return np.ascontiguousarray(np.rot90(image, k=1))
    return image


def area_percentage(box: Rect, frame_width: float, frame_height: float) -> float:
    frame_area = float(frame_width) * float(frame_height)
    if frame_area <= 0:
        return 0.0
    return box.area / frame_area * 100.0


@dataclass(frozen=True)
class DetectionSnapshot:
    objects: tuple[DetectedObject, ...]
    frame_width: int
    frame_height: int
    rotation_degrees: int
    captured_at_ms: float

    def empty(self) -> "DetectionSnapshot":
        return replace(self, objects=())

    @property
    def has_objects(self) -> bool:
        return len(self.objects) > 0


@dataclass(frozen=True)
class AnalysisResult:
    bounding_box: Rect
    label: str
    area_percentage: float
    confidence: float = 0.0


@dataclass(frozen=True)
class CaptureCandidate:
    obj: DetectedObject
    area_percentage: float
    distance: float
    score: float


class CaptureImage:
    """Single-owner image buffer retained for capture.

    ``release()`` drops the pixels; any later access raises
    ``RecycledSourceError``. Usable as a context manager.
    """

    def __init__(self, pixels: np.ndarray):
        self._pixels: Optional[np.ndarray] = pixels

    @property
    def released(self) -> bool:
        return self._pixels is None

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise RecycledSourceError("capture image has already been released")
        return self._pixels

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def release(self) -> None:
        self._pixels = None

    def __enter__(self) -> "CaptureImage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


@dataclass(frozen=True)
class CropResult:
    image: np.ndarray
    source_rect: Rect
    padding: tuple[float, float] = field(default=(0.0, 0.0))
