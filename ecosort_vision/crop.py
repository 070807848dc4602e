from __future__ import annotations

import logging

import cv2
import numpy as np

from ecosort_pipeline.ep_types import CaptureImage, CropResult, Rect
from ecosort_pipeline.errors import DegenerateCropError, OutOfBoundsError

from .transforms import transform_box

logger = logging.getLogger(__name__)


def downscale_to_fit(image: np.ndarray, max_dim: int | None) -> np.ndarray:
    """Shrink so the largest side is at most max_dim. Returns the input untouched otherwise."""
    h, w = image.shape[:2]
    if not max_dim or max(w, h) <= max_dim:
        return image
    ratio = max_dim / float(max(w, h))
    size = (max(1, int(round(w * ratio))), max(1, int(round(h * ratio))))
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


class CropExtractor:
    """
    Padded, bounds-safe crop of a detected object out of the capture image.

    ``padding`` is the fraction each axis grows by in total, split evenly
    between the two sides: 0.2 adds 10% of the width on the left and on the
    right (same for height), so a 100x50 box becomes 120x60.
    """

    def __init__(self, padding: float = 0.2, max_dim: int | None = 1920):
        self.padding = padding
        self.max_dim = max_dim

    def crop_rect(
        self,
        box: Rect,
        frame_w: int,
        frame_h: int,
        bitmap_w: int,
        bitmap_h: int,
        rotation_degrees: int,
    ) -> tuple[Rect, tuple[float, float]]:
        if not box.is_valid():
            raise DegenerateCropError(f"bounding box has no area: {box}")

        mapped = transform_box(box, frame_w, frame_h, bitmap_w, bitmap_h, rotation_degrees)
        if not mapped.is_valid():
            raise OutOfBoundsError(f"box {box} falls outside the {bitmap_w}x{bitmap_h} bitmap")

        pad = (mapped.width * self.padding / 2.0, mapped.height * self.padding / 2.0)
        rect = mapped.expand(*pad).clamp(bitmap_w, bitmap_h)

        left, top, right, bottom = rect.to_int()
        left, top = max(0, left), max(0, top)
        right, bottom = min(int(bitmap_w), right), min(int(bitmap_h), bottom)
        if right - left <= 0 or bottom - top <= 0:
            raise DegenerateCropError(f"crop collapsed to zero size: {rect}")
        return Rect(left, top, right, bottom), pad

    def extract(
        self,
        source: CaptureImage,
        box: Rect,
        frame_w: int,
        frame_h: int,
        rotation_degrees: int,
    ) -> CropResult:
        """
        Crop ``box`` (analysis-frame space) out of ``source`` (sensor orientation).

        Raises:
            RecycledSourceError: source was already released
            DegenerateCropError: box or resulting crop has no area
            OutOfBoundsError: box does not intersect the bitmap
        """
        image = downscale_to_fit(source.pixels, self.max_dim)
        h, w = image.shape[:2]

        rect, pad = self.crop_rect(box, frame_w, frame_h, w, h, rotation_degrees)
        left, top, right, bottom = (int(v) for v in (rect.left, rect.top, rect.right, rect.bottom))
        crop = image[top:bottom, left:right].copy()
        logger.debug("crop %s from %dx%d bitmap (pad=%.1f,%.1f)", rect, w, h, *pad)
        return CropResult(crop, rect, pad)
