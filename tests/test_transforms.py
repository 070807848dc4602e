import numpy as np
import pytest

from ecosort_pipeline.ep_types import Rect, rotated_dims, upright_image
from ecosort_vision.crop import CropExtractor
from ecosort_vision.transforms import inverse_transform_box, transform_box


def _close(a: Rect, b: Rect, tol: float = 1.0) -> bool:
    return all(
        abs(x - y) <= tol
        for x, y in zip((a.left, a.top, a.right, a.bottom), (b.left, b.top, b.right, b.bottom))
    )


def test_identity_when_dimensions_match():
    box = Rect(10, 20, 30, 40)
    assert transform_box(box, 640, 480, 640, 480, 90) is box


def test_rotation_0_scales_each_axis():
    out = transform_box(Rect(10, 20, 110, 220), 640, 480, 1280, 960, 0)
    assert out == Rect(20, 40, 220, 440)


def test_rotation_180_uses_plain_scaling():
    out = transform_box(Rect(10, 20, 110, 220), 640, 480, 1920, 960, 180)
    assert out == Rect(30, 40, 330, 440)


def test_rotation_90_mapping():
    # frame dims are rotation-corrected: 480x640; bitmap stays 1280x960 (sensor)
    out = transform_box(Rect(100, 50, 140, 110), 480, 640, 1280, 960, 90)
    # scaleX = 1280/640 = 2, scaleY = 960/480 = 2
    assert out == Rect(50 * 2, 960 - 140 * 2, 110 * 2, 960 - 100 * 2)


def test_rotation_270_mapping():
    out = transform_box(Rect(100, 50, 140, 110), 480, 640, 1280, 960, 270)
    assert out == Rect(1280 - 110 * 2, 100 * 2, 1280 - 50 * 2, 140 * 2)


def test_output_is_clamped_to_bitmap():
    out = transform_box(Rect(-50, -50, 700, 500), 640, 480, 320, 240, 0)
    assert out == Rect(0, 0, 320, 240)


def test_rejects_unknown_rotation_and_empty_frame():
    with pytest.raises(ValueError):
        transform_box(Rect(0, 0, 1, 1), 640, 480, 320, 240, 45)
    with pytest.raises(ValueError):
        transform_box(Rect(0, 0, 1, 1), 0, 480, 320, 240, 0)


@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
@pytest.mark.parametrize(
    "box",
    [Rect(0, 0, 50, 60), Rect(100, 50, 140, 110), Rect(200, 300, 479, 639), Rect(10.5, 20.25, 30.75, 400)],
)
def test_round_trip_within_one_pixel(rotation, box):
    # rotation-corrected frame dims; the bitmap keeps sensor orientation
    frame_w, frame_h = 480, 640
    bitmap_w, bitmap_h = (1280, 960) if rotation in (90, 270) else (960, 1280)

    mapped = transform_box(box, frame_w, frame_h, bitmap_w, bitmap_h, rotation)
    back = inverse_transform_box(mapped, frame_w, frame_h, bitmap_w, bitmap_h, rotation)
    assert _close(back, box)


def test_end_to_end_rotation_scenario():
    frame_w, frame_h = rotated_dims(640, 480, 90)
    assert (frame_w, frame_h) == (480, 640)

    box = Rect.from_xywh(100, 50, 40, 60)
    mapped = transform_box(box, frame_w, frame_h, 1080, 1440, 90)
    assert 0 <= mapped.left < mapped.right <= 1080
    assert 0 <= mapped.top < mapped.bottom <= 1440

    rect, pad = CropExtractor(padding=0.2, max_dim=None).crop_rect(box, frame_w, frame_h, 1080, 1440, 90)
    assert pad[0] > 0 and pad[1] > 0
    assert 0 <= rect.left < rect.right <= 1080
    assert 0 <= rect.top < rect.bottom <= 1440


@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
def test_upright_image_agrees_with_transform(rotation):
    sensor = np.zeros((480, 640), dtype=np.uint8)
    sensor[50:150, 100:300] = 255
    upright = upright_image(sensor, rotation)
    fw, fh = rotated_dims(640, 480, rotation)
    assert upright.shape == (fh, fw)

    ys, xs = np.nonzero(upright)
    box = Rect(float(xs.min()), float(ys.min()), float(xs.max() + 1), float(ys.max() + 1))
    if rotation in (90, 270):
        assert transform_box(box, fw, fh, 640, 480, rotation) == Rect(100, 50, 300, 150)
    else:
        assert box == Rect(100, 50, 300, 150)
