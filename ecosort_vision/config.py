from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

from ecosort_pipeline.ep_types import VALID_ROTATIONS


@dataclass
class OverlayConfig:
    """Device-specific overlay calibration."""

    nudge_x: float = 60.0
    nudge_y: float = -75.0
    expand_y: float = 1.2
    font_scale: float = 1.0
    thickness: int = 2

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineConfig:
    pipeline_name: str = "ecosort"
    detector: str = "mobilenet_ssd"  # "mobilenet_ssd", "fixed_region"
    prototxt_path: str = "models/MobileNetSSD_deploy.prototxt"
    model_path: str = "models/MobileNetSSD_deploy.caffemodel"
    confidence_threshold: float = 0.5
    device: int | str = 0
    fps: int = 15
    width: int = 1280
    height: int = 720
    rotation_degrees: int = 0
    max_bitmap_dim: int = 1920
    crop_padding: float = 0.2
    display_area_pct: float = 0.5
    capture_area_pct: float = 1.0
    stale_after_ms: float = 5000.0
    reset_min_frames: int = 50
    classify_interval_ms: float = 1500.0
    detect_timeout_s: Optional[float] = 2.0
    output_dir: Optional[str] = None
    duration_sec: float = 10.0
    max_frames: Optional[int] = None
    dry_run: bool = False
    overlay: OverlayConfig = field(default_factory=OverlayConfig)

    def __post_init__(self):
        validate_rotation(self.rotation_degrees)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "PipelineConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        validate_rotation(self.rotation_degrees)
        return self


def validate_rotation(value: Any) -> int:
    if value not in VALID_ROTATIONS:
        raise ValueError(f"rotation_degrees must be one of {VALID_ROTATIONS}, got {value!r}")
    return int(value)


def _load_yaml(path: Path) -> dict[str, Any]:
    import yaml

    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _optional(value: Any, cast):
    if value is None:
        return None
    return cast(value)


def load_config(path: str | Path) -> PipelineConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = PipelineConfig()
    cfg.pipeline_name = str(raw.get("pipeline_name", cfg.pipeline_name))
    cfg.detector = str(raw.get("detector", cfg.detector))
    cfg.prototxt_path = str(raw.get("prototxt_path", cfg.prototxt_path))
    cfg.model_path = str(raw.get("model_path", cfg.model_path))
    cfg.confidence_threshold = float(raw.get("confidence_threshold", cfg.confidence_threshold))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.rotation_degrees = validate_rotation(int(raw.get("rotation_degrees", cfg.rotation_degrees)))
    cfg.max_bitmap_dim = int(raw.get("max_bitmap_dim", cfg.max_bitmap_dim))
    cfg.crop_padding = float(raw.get("crop_padding", cfg.crop_padding))
    cfg.display_area_pct = float(raw.get("display_area_pct", cfg.display_area_pct))
    cfg.capture_area_pct = float(raw.get("capture_area_pct", cfg.capture_area_pct))
    cfg.stale_after_ms = float(raw.get("stale_after_ms", cfg.stale_after_ms))
    cfg.reset_min_frames = int(raw.get("reset_min_frames", cfg.reset_min_frames))
    cfg.classify_interval_ms = float(raw.get("classify_interval_ms", cfg.classify_interval_ms))
    cfg.detect_timeout_s = _optional(raw.get("detect_timeout_s", cfg.detect_timeout_s), float)
    cfg.output_dir = _optional(raw.get("output_dir", cfg.output_dir), str)
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = _optional(raw.get("max_frames", cfg.max_frames), int)
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))

    ov_raw = raw.get("overlay")
    if ov_raw is not None:
        if not isinstance(ov_raw, dict):
            raise ValueError("overlay must be a mapping")
        ov = OverlayConfig()
        ov.nudge_x = float(ov_raw.get("nudge_x", ov.nudge_x))
        ov.nudge_y = float(ov_raw.get("nudge_y", ov.nudge_y))
        ov.expand_y = float(ov_raw.get("expand_y", ov.expand_y))
        ov.font_scale = float(ov_raw.get("font_scale", ov.font_scale))
        ov.thickness = int(ov_raw.get("thickness", ov.thickness))
        cfg.overlay = ov

    return cfg
