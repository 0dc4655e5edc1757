"""Math primitives for camgeom."""

from .distortion import (
    Distortion,
    DistortionTolerances,
    DistortionType,
    FisheyeDistortion,
    NullDistortion,
)
from .jacobians import (
    JacobianCheckReport,
    check_distortion_jacobians,
    check_jacobian,
    finite_difference_jacobian,
    numerical_parameter_jacobian,
    numerical_point_jacobian,
)

__all__ = [
    "Distortion",
    "DistortionTolerances",
    "DistortionType",
    "FisheyeDistortion",
    "NullDistortion",
    "JacobianCheckReport",
    "check_distortion_jacobians",
    "check_jacobian",
    "finite_difference_jacobian",
    "numerical_parameter_jacobian",
    "numerical_point_jacobian",
]
