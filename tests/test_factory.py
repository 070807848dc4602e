from unittest.mock import patch

import pytest

from ecosort_pipeline.factory import DetectorFactory
from ecosort_vision.config import PipelineConfig


@patch("ecosort_pipeline.factory.MobileNetSSDDetector")
def test_factory_builds_ssd_from_config(mock_ssd):
    cfg = PipelineConfig(prototxt_path="a.prototxt", model_path="b.caffemodel", confidence_threshold=0.6)

    det = DetectorFactory.from_config(cfg)

    mock_ssd.assert_called_once_with(
        prototxt_path="a.prototxt", model_path="b.caffemodel", confidence_threshold=0.6
    )
    assert det == mock_ssd.return_value


@patch("ecosort_pipeline.factory.MobileNetSSDDetector")
@patch("ecosort_pipeline.factory.FixedRegionDetector")
def test_factory_builds_fixed_region(mock_fixed, mock_ssd):
    det = DetectorFactory.create(" Fixed_Region ")
    mock_fixed.assert_called_once_with()
    mock_ssd.assert_not_called()
    assert det == mock_fixed.return_value


@patch("ecosort_pipeline.factory.MobileNetSSDDetector")
def test_unknown_kind_falls_back_to_ssd(mock_ssd, caplog):
    with caplog.at_level("WARNING"):
        DetectorFactory.create("yolo", PipelineConfig())
    mock_ssd.assert_called_once()
    assert "Unknown detector type" in caplog.text


def test_ssd_without_config_is_rejected():
    with pytest.raises(ValueError):
        DetectorFactory.create("mobilenet_ssd")
