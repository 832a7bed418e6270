"""
Configuration parameters for head reconstruction and headwear fitting.
"""

from dataclasses import asdict, dataclass
import math

from facehead.core.exceptions import ConfigurationError
from facehead.core.topology import NUM_LANDMARKS, SKIN_ANCHORS


# Used when no skin anchor could be sampled (#d4956a)
SKIN_FALLBACK = (212 / 255, 149 / 255, 106 / 255)


@dataclass(frozen=True)
class HeadwearCalibration:
    """
    Placement constants for one specific prop asset.

    These were tuned by eye against the authored model and are not derived
    from the geometry. Recalibrate whenever the asset changes.
    """
    asset_id: str
    rotation: tuple[float, float, float]  # intrinsic XYZ Euler angles (radians)
    scale_factor: float = 1.0   # prop radius relative to head radius
    offset_up: float = 0.47     # fraction of head radius (+ = up)
    offset_back: float = 0.72   # fraction of head radius (+ = back)


HEADWEAR_CALIBRATIONS = {
    "sfera_helmet": HeadwearCalibration(
        asset_id="sfera_helmet",
        rotation=(math.pi / 2, math.pi, math.pi / 2 + math.pi),
        scale_factor=1.0,
        offset_up=0.47,
        offset_back=0.72,
    ),
}


@dataclass
class HeadBuildConfig:
    """Tunable reconstruction parameters."""

    # Back shell (extruded face perimeter)
    depth_factor: float = 0.5          # shell depth = bbox width * this
    taper_min: float = 0.94
    taper_range: float = 0.04          # back taper = taper_min + taper_range * t
    ring1_taper: float = 0.97
    ring2_taper: float = 0.96
    forehead_bulge: float = 0.1        # fraction of depth
    dome_height: float = 0.18          # fraction of depth

    # Face surface
    shrink_nose: bool = False
    nose_scale: float = 0.85           # < 1 pulls the nose toward its centroid

    # Skin sampling
    skin_patch_size: int = 24          # pixels
    skin_anchors: tuple[int, ...] = SKIN_ANCHORS

    # Face texture
    texture_size: int = 512
    oval_inset: float = 0.02           # clip inset to avoid hair at the perimeter
    jpeg_quality: int = 85
    contrast: float = 1.05
    saturation: float = 1.1

    # Materials
    face_roughness: float = 0.75
    face_metalness: float = 0.0
    shell_roughness: float = 0.9
    shell_metalness: float = 0.0

    # Headwear
    headwear_asset: str = "sfera_helmet"
    headwear_scale: float | None = None        # overrides the calibration table
    headwear_offset_up: float | None = None
    headwear_offset_back: float | None = None
    headwear_roughness: float = 0.08
    headwear_metalness: float = 0.92
    headwear_hue: float = 220.0                # degrees, [0, 360)
    headwear_saturation: float = 0.35
    headwear_lightness: tuple[float, float] = (0.45, 0.75)

    def __post_init__(self):
        if self.depth_factor <= 0:
            raise ConfigurationError("depth_factor must be positive", "depth_factor")
        if self.taper_range < 0:
            raise ConfigurationError("taper_range must be >= 0", "taper_range")
        if self.texture_size <= 0:
            raise ConfigurationError("texture_size must be positive", "texture_size")
        if self.skin_patch_size <= 0:
            raise ConfigurationError("skin_patch_size must be positive", "skin_patch_size")
        if not 1 <= self.jpeg_quality <= 100:
            raise ConfigurationError("jpeg_quality must be in [1, 100]", "jpeg_quality")
        if self.contrast < 0 or self.saturation < 0:
            raise ConfigurationError("color grade factors must be >= 0", "contrast/saturation")
        if not 0 <= self.oval_inset < 1:
            raise ConfigurationError("oval_inset must be in [0, 1)", "oval_inset")
        if any(not 0 <= i < NUM_LANDMARKS for i in self.skin_anchors):
            raise ConfigurationError("skin anchor out of landmark range", "skin_anchors")

    def calibration(self) -> HeadwearCalibration:
        """Calibration for the configured asset with any explicit overrides applied."""
        try:
            base = HEADWEAR_CALIBRATIONS[self.headwear_asset]
        except KeyError as exc:
            raise ConfigurationError(
                f"No calibration for headwear asset '{self.headwear_asset}'",
                "headwear_asset",
                cause=exc,
            )

        return HeadwearCalibration(
            asset_id=base.asset_id,
            rotation=base.rotation,
            scale_factor=base.scale_factor if self.headwear_scale is None else self.headwear_scale,
            offset_up=base.offset_up if self.headwear_offset_up is None else self.headwear_offset_up,
            offset_back=(
                base.offset_back if self.headwear_offset_back is None
                else self.headwear_offset_back
            ),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# Default configuration instance
DEFAULT_CONFIG = HeadBuildConfig()
