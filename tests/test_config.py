import math

import pytest

from facehead.config import DEFAULT_CONFIG, HEADWEAR_CALIBRATIONS, SKIN_FALLBACK, HeadBuildConfig
from facehead.core.exceptions import ConfigurationError, HeadBuildError


def test_defaults():
    assert DEFAULT_CONFIG.depth_factor == 0.5
    assert DEFAULT_CONFIG.texture_size == 512
    assert DEFAULT_CONFIG.skin_anchors == (10, 93, 323)
    assert SKIN_FALLBACK == pytest.approx((0xd4 / 255, 0x95 / 255, 0x6a / 255))


def test_default_calibration():
    calibration = DEFAULT_CONFIG.calibration()
    assert calibration.asset_id == "sfera_helmet"
    assert calibration.rotation == pytest.approx((math.pi / 2, math.pi, 3 * math.pi / 2))
    assert calibration.offset_up == pytest.approx(0.47)
    assert calibration.offset_back == pytest.approx(0.72)


def test_calibration_overrides():
    config = HeadBuildConfig(headwear_scale=1.2, headwear_offset_back=0.5)
    calibration = config.calibration()
    assert calibration.scale_factor == 1.2
    assert calibration.offset_back == 0.5
    assert calibration.offset_up == HEADWEAR_CALIBRATIONS["sfera_helmet"].offset_up


def test_unknown_asset():
    with pytest.raises(ConfigurationError, match="headwear_asset"):
        HeadBuildConfig(headwear_asset="top_hat").calibration()


@pytest.mark.parametrize("kwargs", [
    {"depth_factor": 0.0},
    {"taper_range": -0.04},
    {"texture_size": 0},
    {"skin_patch_size": -1},
    {"jpeg_quality": 101},
    {"contrast": -0.1},
    {"oval_inset": 1.0},
    {"skin_anchors": (10, 468)},
])
def test_invalid_values(kwargs):
    with pytest.raises(ConfigurationError):
        HeadBuildConfig(**kwargs)


def test_to_dict():
    data = HeadBuildConfig(headwear_hue=10.0).to_dict()
    assert data["headwear_hue"] == 10.0
    assert data["headwear_lightness"] == (0.45, 0.75)


def test_error_message_includes_context_and_cause():
    error = HeadBuildError("boom", context={"stage": "merge"}, cause=ValueError("bad"))
    assert str(error) == "boom [stage=merge] (caused by: bad)"
    assert error.context == {"stage": "merge"}
    assert isinstance(error.cause, ValueError)
