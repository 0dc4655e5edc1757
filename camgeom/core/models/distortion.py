"""Configuration models for lens distortion."""

import logging
from typing import Annotated, Any, Dict, Literal, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator

from ..math.distortion import (
    Distortion,
    DistortionTolerances,
    DistortionType,
    FisheyeDistortion,
    NullDistortion,
)

logger = logging.getLogger(__name__)

_DEFAULT_TOLERANCES = DistortionTolerances()


class NullDistortionConfig(BaseModel):
    """Configuration for a lens without distortion."""

    type: Literal["none"] = "none"


class FisheyeDistortionConfig(BaseModel):
    """Configuration for the single-parameter fisheye model."""

    type: Literal["fisheye"] = "fisheye"
    w: float = Field(description="Field-of-view parameter in radians")
    w_squared_threshold: float = Field(
        default=_DEFAULT_TOLERANCES.w_squared_threshold,
        gt=0,
        description="Below this w^2 the forward map is the identity"
    )
    radius_squared_threshold: float = Field(
        default=_DEFAULT_TOLERANCES.radius_squared_threshold,
        gt=0,
        description="Below this r^2 the forward radial scale takes its r -> 0 limit"
    )
    max_valid_angle: float = Field(
        default=_DEFAULT_TOLERANCES.max_valid_angle,
        gt=0,
        lt=np.pi / 2,
        description="Largest |r_d * w| that can be undistorted, in radians"
    )

    @field_validator('w')
    @classmethod
    def validate_w(cls, v):
        if not np.isfinite(v):
            raise ValueError("w must be finite")
        return v

    def get_tolerances(self) -> DistortionTolerances:
        """Get branch thresholds as a DistortionTolerances."""
        return DistortionTolerances(
            w_squared_threshold=self.w_squared_threshold,
            radius_squared_threshold=self.radius_squared_threshold,
            max_valid_angle=self.max_valid_angle,
        )


DistortionConfig = Annotated[
    Union[NullDistortionConfig, FisheyeDistortionConfig],
    Field(discriminator="type")
]

DISTORTION_CONFIGS: Dict[str, type] = {
    DistortionType.NONE.value: NullDistortionConfig,
    DistortionType.FISHEYE.value: FisheyeDistortionConfig,
}


def create_distortion(
    config: Union[NullDistortionConfig, FisheyeDistortionConfig, Dict[str, Any]]
) -> Distortion:
    """Create a distortion model from a config model or a plain dict."""
    if isinstance(config, dict):
        distortion_type = config.get("type")
        if distortion_type not in DISTORTION_CONFIGS:
            raise ValueError(f"Unknown distortion type: {distortion_type}")
        config = DISTORTION_CONFIGS[distortion_type](**config)

    if isinstance(config, FisheyeDistortionConfig):
        distortion = FisheyeDistortion(config.w, config.get_tolerances())
    elif isinstance(config, NullDistortionConfig):
        distortion = NullDistortion()
    else:
        raise ValueError(f"Unsupported distortion config: {type(config).__name__}")

    logger.info(f"Created {distortion!r}")
    return distortion


def distortion_to_config(
    distortion: Distortion
) -> Union[NullDistortionConfig, FisheyeDistortionConfig]:
    """Convert a distortion model back into its config model."""
    if isinstance(distortion, FisheyeDistortion):
        tolerances = distortion.tolerances
        return FisheyeDistortionConfig(
            w=distortion.w,
            w_squared_threshold=tolerances.w_squared_threshold,
            radius_squared_threshold=tolerances.radius_squared_threshold,
            max_valid_angle=tolerances.max_valid_angle,
        )
    if isinstance(distortion, NullDistortion):
        return NullDistortionConfig()
    raise ValueError(f"Unsupported distortion: {type(distortion).__name__}")
