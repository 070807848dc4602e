import argparse
import signal
import sys

from .config import PipelineConfig, load_config
from .session import CaptureWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run live waste detection and capture")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--name")
    ap.add_argument("--detector", choices=["mobilenet_ssd", "fixed_region"])
    ap.add_argument("--prototxt")
    ap.add_argument("--model")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--rotation", type=int, choices=[0, 90, 180, 270])
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--capture", action="store_true", help="Capture the best object at the end")

    return ap


def _apply_args(cfg: PipelineConfig, args: argparse.Namespace) -> PipelineConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        pipeline_name=args.name,
        detector=args.detector,
        prototxt_path=args.prototxt,
        model_path=args.model,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        rotation_degrees=args.rotation,
        output_dir=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        dry_run=args.dry_run if args.dry_run else None,
    )
    return cfg


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else PipelineConfig()
    cfg = _apply_args(cfg, args)

    worker = CaptureWorker(cfg)

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        summary = worker.run(capture_at_end=args.capture)
    except RuntimeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
