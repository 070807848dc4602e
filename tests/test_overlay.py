import numpy as np
import pytest

from ecosort_pipeline.ep_types import AnalysisResult, Rect
from ecosort_vision.config import OverlayConfig
from ecosort_vision.overlay import DrawRect, DrawText, draw_overlay, render_overlay

NO_CAL = OverlayConfig(nudge_x=0.0, nudge_y=0.0, expand_y=1.0)


def _measure(text):
    return 100.0, 20.0


def _result(box, label="Bottle", pct=3.2):
    return AnalysisResult(box, label, pct, 0.9)


def test_scaled_box_label_background_and_text():
    cmds = render_overlay(
        [_result(Rect(10, 20, 110, 220))], 480, 640, 960, 1280, NO_CAL, measure_text=_measure
    )
    box, bg, text = cmds
    assert box == DrawRect(Rect(20, 40, 220, 440), "box")
    assert bg == DrawRect(Rect(20, 10, 140, 40), "label_background")
    assert text == DrawText("Bottle 3%", 30, 30)


def test_letterboxed_view_centres_frame():
    (box, _bg, _text) = render_overlay(
        [_result(Rect(0, 0, 640, 480))], 640, 480, 1280, 1280, NO_CAL, measure_text=_measure
    )
    assert box.rect == Rect(0, 160, 1280, 1120)


def test_calibration_nudges_and_grows_vertically():
    cal = OverlayConfig(nudge_x=60.0, nudge_y=-75.0, expand_y=1.2)
    (box, _bg, _text) = render_overlay(
        [_result(Rect(100, 100, 200, 200))], 640, 480, 640, 480, cal, measure_text=_measure
    )
    assert box.rect.left == pytest.approx(160.0)
    assert box.rect.right == pytest.approx(260.0)
    assert box.rect.top == pytest.approx(15.0)
    assert box.rect.bottom == pytest.approx(135.0)


def test_final_label_replaces_detector_label():
    box = Rect(10, 20, 110, 220)
    cmds = render_overlay(
        [_result(box, pct=12.6)],
        480,
        640,
        480,
        640,
        NO_CAL,
        final_labels={box.key(): "Plastic Bottle"},
        measure_text=_measure,
    )
    assert cmds[-1].text == "Plastic Bottle 13%"


def test_empty_results_draw_nothing_or_message():
    assert render_overlay([], 480, 640, 960, 1280, NO_CAL, measure_text=_measure) == []
    assert render_overlay([_result(Rect(0, 0, 1, 1))], 0, 0, 960, 1280, NO_CAL, measure_text=_measure) == []
    (msg,) = render_overlay([], 480, 640, 960, 1280, NO_CAL, global_message="Hold steady", measure_text=_measure)
    assert msg == DrawText("Hold steady", 50.0, 150.0, kind="message")


def test_draw_overlay_paints_box_pixels():
    image = np.zeros((200, 200, 3), dtype=np.uint8)
    cmds = render_overlay([_result(Rect(50, 50, 150, 150))], 200, 200, 200, 200, NO_CAL)
    out = draw_overlay(image, cmds, NO_CAL)
    assert out is image
    assert image[100, 50].tolist() == [255, 0, 255]
