import logging

from .strategies.detector_base import ObjectDetector
from .strategies.detect_fixed_region import FixedRegionDetector
from .strategies.detect_ssd import MobileNetSSDDetector

logger = logging.getLogger(__name__)

MOBILENET_SSD = "mobilenet_ssd"
FIXED_REGION = "fixed_region"


class DetectorFactory:
    @staticmethod
    def create(kind: str, config=None) -> ObjectDetector:
        key = (kind or "").strip().lower()
        if key not in (MOBILENET_SSD, FIXED_REGION):
            logger.warning("Unknown detector type: %r, defaulting to %s", kind, MOBILENET_SSD)
            key = MOBILENET_SSD

        if key == FIXED_REGION:
            return FixedRegionDetector()

        if config is None:
            raise ValueError(f"{MOBILENET_SSD} detector requires a config with model paths")
        return MobileNetSSDDetector(
            prototxt_path=getattr(config, "prototxt_path", ""),
            model_path=getattr(config, "model_path", ""),
            confidence_threshold=getattr(config, "confidence_threshold", 0.5),
        )

    @staticmethod
    def from_config(config) -> ObjectDetector:
        return DetectorFactory.create(config.detector, config)
