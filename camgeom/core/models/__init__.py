"""Configuration models for camgeom."""

from .distortion import (
    DISTORTION_CONFIGS,
    DistortionConfig,
    FisheyeDistortionConfig,
    NullDistortionConfig,
    create_distortion,
    distortion_to_config,
)

__all__ = [
    "DISTORTION_CONFIGS",
    "DistortionConfig",
    "FisheyeDistortionConfig",
    "NullDistortionConfig",
    "create_distortion",
    "distortion_to_config",
]
