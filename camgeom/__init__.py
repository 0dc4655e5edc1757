"""camgeom - Camera geometry for visual perception front ends

Closed-form lens distortion models with analytic Jacobians, and the per-frame
containers their measurements live in.
"""

__version__ = "0.1.0"

# Distortion models
from .core.math.distortion import (
    Distortion,
    DistortionTolerances,
    DistortionType,
    FisheyeDistortion,
    NullDistortion,
)

# Configuration
from .core.models.distortion import (
    DistortionConfig,
    FisheyeDistortionConfig,
    NullDistortionConfig,
    create_distortion,
    distortion_to_config,
)

# Frames
from .core.frames.visual_frame import VisualFrame

__all__ = [
    # Version
    "__version__",
    # Distortion
    "Distortion",
    "DistortionTolerances",
    "DistortionType",
    "FisheyeDistortion",
    "NullDistortion",
    # Configuration
    "DistortionConfig",
    "FisheyeDistortionConfig",
    "NullDistortionConfig",
    "create_distortion",
    "distortion_to_config",
    # Frames
    "VisualFrame",
]
