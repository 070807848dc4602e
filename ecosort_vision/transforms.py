"""Coordinate mapping between analysis-frame space and capture-bitmap space.

Frame dimensions passed here are rotation-corrected (axes swapped for 90 and
270 degrees). The capture bitmap stays in raw sensor orientation, so for
those rotations the box is rotated as well as scaled.
"""

from ecosort_pipeline.ep_types import Rect, VALID_ROTATIONS


def _check(frame_w: float, frame_h: float, rotation_degrees: int) -> None:
    if frame_w <= 0 or frame_h <= 0:
        raise ValueError(f"frame dimensions must be positive, got {frame_w}x{frame_h}")
    if rotation_degrees not in VALID_ROTATIONS:
        raise ValueError(f"rotation_degrees must be one of {VALID_ROTATIONS}, got {rotation_degrees}")


def transform_box(
    box: Rect,
    frame_w: float,
    frame_h: float,
    bitmap_w: float,
    bitmap_h: float,
    rotation_degrees: int,
) -> Rect:
    """
    Map a bounding box from analysis-frame space into bitmap space.

    Args:
        box: Box in analysis-frame coordinates
        frame_w: Rotation-corrected frame width
        frame_h: Rotation-corrected frame height
        bitmap_w: Capture bitmap width (sensor orientation)
        bitmap_h: Capture bitmap height (sensor orientation)
        rotation_degrees: One of 0, 90, 180, 270

    Returns:
        Box in bitmap coordinates, every edge clamped into the bitmap.
    """
    _check(frame_w, frame_h, rotation_degrees)

    if frame_w == bitmap_w and frame_h == bitmap_h:
        return box

    if rotation_degrees == 90:
        sx = bitmap_w / frame_h
        sy = bitmap_h / frame_w
        out = Rect(
            box.top * sy,
            bitmap_h - box.right * sx,
            box.bottom * sy,
            bitmap_h - box.left * sx,
        )
    elif rotation_degrees == 270:
        sx = bitmap_w / frame_h
        sy = bitmap_h / frame_w
        out = Rect(
            bitmap_w - box.bottom * sy,
            box.left * sx,
            bitmap_w - box.top * sy,
            box.right * sx,
        )
    else:
        sx = bitmap_w / frame_w
        sy = bitmap_h / frame_h
        out = Rect(box.left * sx, box.top * sy, box.right * sx, box.bottom * sy)

    return out.clamp(bitmap_w, bitmap_h)


def inverse_transform_box(
    box: Rect,
    frame_w: float,
    frame_h: float,
    bitmap_w: float,
    bitmap_h: float,
    rotation_degrees: int,
) -> Rect:
    """Undo transform_box for a box that was not clamped."""
    _check(frame_w, frame_h, rotation_degrees)

    if frame_w == bitmap_w and frame_h == bitmap_h:
        return box

    if rotation_degrees == 90:
        sx = bitmap_w / frame_h
        sy = bitmap_h / frame_w
        return Rect(
            (bitmap_h - box.bottom) / sx,
            box.left / sy,
            (bitmap_h - box.top) / sx,
            box.right / sy,
        )
    if rotation_degrees == 270:
        sx = bitmap_w / frame_h
        sy = bitmap_h / frame_w
        return Rect(
            box.top / sx,
            (bitmap_w - box.right) / sy,
            box.bottom / sx,
            (bitmap_w - box.left) / sy,
        )

    sx = bitmap_w / frame_w
    sy = bitmap_h / frame_h
    return Rect(box.left / sx, box.top / sy, box.right / sx, box.bottom / sy)
