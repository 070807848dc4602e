"""Real-time waste detection and capture pipeline."""

from .config import PipelineConfig
from .pipeline import CapturePipeline
from .session import CaptureWorker

__all__ = ["PipelineConfig", "CapturePipeline", "CaptureWorker"]
