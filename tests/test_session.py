import logging
import signal

import cv2

from ecosort_vision import run
from ecosort_vision.capture import SyntheticCapture
from ecosort_vision.config import PipelineConfig
from ecosort_vision.session import CaptureWorker


def _dry_config(tmp_path, **kw):
    cfg = PipelineConfig(
        pipeline_name="dry",
        detector="fixed_region",
        fps=0,
        width=160,
        height=120,
        output_dir=str(tmp_path),
        max_frames=5,
        dry_run=True,
    )
    return cfg.apply_overrides(**kw)


def test_dry_run_session_captures_centre_object(tmp_path):
    cfg = _dry_config(tmp_path)
    worker = CaptureWorker(cfg)

    summary = worker.run(capture_at_end=True)

    assert summary.frames_submitted == 5
    assert summary.frames_analyzed + summary.frames_dropped == 5
    assert summary.frames_analyzed >= 1
    assert summary.errors == 0
    assert summary.capture_path is not None
    # centre-half box 80x60 plus padding
    assert cv2.imread(summary.capture_path).shape == (72, 96, 3)
    assert not worker.pipeline.capture_enabled


def test_every_synthetic_frame_is_released(tmp_path):
    cfg = _dry_config(tmp_path, max_frames=8)
    source = SyntheticCapture(0, 64, 48)
    CaptureWorker(cfg, capture=source).run()
    assert source.idx == 8
    assert source.released == 8


def test_cli_dry_run(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(signal, "signal", lambda *a: None)
    code = run.main([
        "--dry-run", "--detector", "fixed_region", "--max-frames", "3", "--fps", "0",
        "--width", "64", "--height", "48", "--out", str(tmp_path),
    ])
    assert code == 0
    assert "SessionSummary" in capsys.readouterr().out


def test_cli_reports_missing_model(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(signal, "signal", lambda *a: None)
    code = run.main([
        "--dry-run", "--detector", "mobilenet_ssd",
        "--prototxt", str(tmp_path / "missing.prototxt"),
        "--model", str(tmp_path / "missing.caffemodel"),
    ])
    assert code == 1
    assert "detector unavailable" in capsys.readouterr().err


def test_session_log_is_written_under_output_dir(tmp_path):
    cfg = _dry_config(tmp_path, pipeline_name="logged")
    worker = CaptureWorker(cfg)

    summary = worker.run()

    assert summary.log_path == str(tmp_path / "session.log")
    text = (tmp_path / "session.log").read_text()
    assert "[logged] session started" in text
    assert "summary frames=5" in text
    assert not any(isinstance(h, logging.FileHandler) for h in worker.logger.handlers)
