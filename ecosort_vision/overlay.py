"""Overlay geometry: analysis results to view-space draw commands.

``render_overlay`` is pure; ``draw_overlay`` executes the commands on a BGR
image with OpenCV for previews and annotated captures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence

import cv2
import numpy as np

from ecosort_pipeline.ep_types import AnalysisResult, Rect

from .config import OverlayConfig

FONT = cv2.FONT_HERSHEY_SIMPLEX

BOX_COLOR = (255, 0, 255)
TEXT_COLOR = (255, 255, 255)
MESSAGE_COLOR = (0, 255, 255)


@dataclass(frozen=True)
class DrawRect:
    rect: Rect
    kind: str  # "box" | "label_background"


@dataclass(frozen=True)
class DrawText:
    text: str
    x: float
    y: float
    kind: str = "label"  # "label" | "message"


TextMeasure = Callable[[str], tuple[float, float]]


def cv2_text_measure(font_scale: float = 1.0, thickness: int = 2) -> TextMeasure:
    def measure(text: str) -> tuple[float, float]:
        (w, h), baseline = cv2.getTextSize(text, FONT, font_scale, thickness)
        return float(w), float(h + baseline)
    return measure


def render_overlay(
    results: Sequence[AnalysisResult],
    frame_width: int,
    frame_height: int,
    view_width: int,
    view_height: int,
    calibration: Optional[OverlayConfig] = None,
    final_labels: Optional[Mapping[str, str]] = None,
    global_message: Optional[str] = None,
    measure_text: Optional[TextMeasure] = None,
) -> list:
    """
    Map analysis results onto the view.

    A uniform scale keeps the frame aspect ratio and the frame is centred in
    the view. The calibration nudge and vertical expansion are applied on top.
    A late classification in ``final_labels`` (keyed by ``Rect.key()``)
    replaces the detector label.
    """
    cal = calibration or OverlayConfig()
    if measure_text is None:
        measure_text = cv2_text_measure(cal.font_scale, cal.thickness)

    if not results or frame_width <= 0 or frame_height <= 0 or view_width <= 0 or view_height <= 0:
        if global_message and view_width > 0 and view_height > 0:
            return [DrawText(global_message, 50.0, 150.0, kind="message")]
        return []

    scale = min(view_width / frame_width, view_height / frame_height)
    offset_x = (view_width - frame_width * scale) / 2.0
    offset_y = (view_height - frame_height * scale) / 2.0
    labels = final_labels or {}

    commands: list = []
    for r in results:
        box = r.bounding_box
        label = labels.get(box.key(), r.label)

        scaled_h = box.height * scale
        grow = (scaled_h * cal.expand_y - scaled_h) / 2.0

        rect = Rect(
            box.left * scale + offset_x + cal.nudge_x,
            box.top * scale + offset_y + cal.nudge_y - grow,
            box.right * scale + offset_x + cal.nudge_x,
            box.bottom * scale + offset_y + cal.nudge_y + grow,
        )
        commands.append(DrawRect(rect, "box"))

        text = f"{label} {int(round(r.area_percentage))}%"
        text_w, text_h = measure_text(text)
        commands.append(DrawRect(Rect(rect.left, rect.top - text_h - 10, rect.left + text_w + 20, rect.top), "label_background"))
        commands.append(DrawText(text, rect.left + 10, rect.top - 10))
    return commands


def draw_overlay(image: np.ndarray, commands: Sequence, calibration: Optional[OverlayConfig] = None) -> np.ndarray:
    cal = calibration or OverlayConfig()
    for cmd in commands:
        if isinstance(cmd, DrawRect):
            l, t, r, b = cmd.rect.to_int()
            if cmd.kind == "box":
                cv2.rectangle(image, (l, t), (r, b), BOX_COLOR, 5)
            else:
                cv2.rectangle(image, (l, t), (r, b), BOX_COLOR, -1)
        elif isinstance(cmd, DrawText):
            color = MESSAGE_COLOR if cmd.kind == "message" else TEXT_COLOR
            cv2.putText(
                image,
                cmd.text,
                (int(cmd.x), int(cmd.y)),
                FONT,
                cal.font_scale,
                color,
                cal.thickness,
                cv2.LINE_AA,
            )
    return image
