"""Finite-difference checks for analytic distortion Jacobians."""

import copy
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

import numpy as np

from .distortion import Distortion

logger = logging.getLogger(__name__)


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-7,
    method: str = "central"
) -> np.ndarray:
    """Compute Jacobian using finite differences.

    Args:
        func: Function mapping x to an output vector
        x: Evaluation point
        h: Step size
        method: "forward" or "central"

    Returns:
        Jacobian matrix J where J[i,j] = df_i/dx_j
    """
    if method not in ("forward", "central"):
        raise ValueError(f"Unknown finite difference method: {method}")

    x = np.atleast_1d(np.asarray(x, dtype=float))
    f0 = np.atleast_1d(func(x.copy()))
    J = np.zeros((len(f0), len(x)))

    for j in range(len(x)):
        x_plus = x.copy()
        x_plus[j] += h
        f_plus = np.atleast_1d(func(x_plus))

        if method == "forward":
            J[:, j] = (f_plus - f0) / h
        else:
            x_minus = x.copy()
            x_minus[j] -= h
            f_minus = np.atleast_1d(func(x_minus))
            J[:, j] = (f_plus - f_minus) / (2 * h)

    return J


def numerical_point_jacobian(
    distortion: Distortion,
    point: np.ndarray,
    h: float = 1e-7
) -> np.ndarray:
    """Numerical 2x2 Jacobian of distortion.distort at point."""
    return finite_difference_jacobian(distortion.distort, point, h)


def numerical_parameter_jacobian(
    distortion: Distortion,
    point: np.ndarray,
    h: float = 1e-7
) -> np.ndarray:
    """Numerical 2xP Jacobian of the distorted point w.r.t. the parameters.

    The input distortion is left unchanged; perturbations go through a copy.
    """
    point = np.asarray(point, dtype=float)
    perturbed = copy.copy(distortion)

    def distort_with(params: np.ndarray) -> np.ndarray:
        perturbed.set_parameters(params)
        return perturbed.distort(point)

    J = finite_difference_jacobian(distort_with, distortion.get_parameters(), h)
    return J.reshape(2, distortion.num_parameters)


def check_jacobian(
    analytic: np.ndarray,
    numeric: np.ndarray,
    atol: float = 1e-6,
    rtol: float = 1e-6
) -> Tuple[bool, float, np.ndarray]:
    """Compare an analytic Jacobian against a numerical one.

    Returns:
        Tuple of (is_correct, max_error, error_matrix)
    """
    if analytic.shape != numeric.shape:
        raise ValueError(
            f"Jacobian shapes differ: {analytic.shape} vs {numeric.shape}"
        )

    error = np.abs(analytic - numeric)
    max_error = float(np.max(error)) if error.size else 0.0
    is_correct = bool(np.allclose(analytic, numeric, atol=atol, rtol=rtol))

    return is_correct, max_error, error


@dataclass
class JacobianCheckReport:
    """Per-point results of check_distortion_jacobians."""

    point_errors: List[float] = field(default_factory=list)
    parameter_errors: List[float] = field(default_factory=list)
    failed_points: List[int] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failed_points

    @property
    def max_point_error(self) -> float:
        return max(self.point_errors, default=0.0)

    @property
    def max_parameter_error(self) -> float:
        return max(self.parameter_errors, default=0.0)


def check_distortion_jacobians(
    distortion: Distortion,
    points: np.ndarray,
    h: float = 1e-7,
    atol: float = 1e-6,
    rtol: float = 1e-5
) -> JacobianCheckReport:
    """Check point and parameter Jacobians of a distortion at many points.

    Args:
        distortion: Distortion model under test
        points: Nx2 array of undistorted points
        h: Finite difference step
        atol: Absolute tolerance
        rtol: Relative tolerance

    Returns:
        Report with the maximal error per point and indices of failures
    """
    points = np.atleast_2d(np.asarray(points, dtype=float))
    report = JacobianCheckReport()

    for i, point in enumerate(points):
        _, J_point = distortion.distort_with_jacobian(point)
        point_ok, point_error, _ = check_jacobian(
            J_point, numerical_point_jacobian(distortion, point, h), atol, rtol
        )

        J_param = distortion.distort_parameter_jacobian(point)
        param_ok, param_error, _ = check_jacobian(
            J_param, numerical_parameter_jacobian(distortion, point, h), atol, rtol
        )

        report.point_errors.append(point_error)
        report.parameter_errors.append(param_error)

        if not (point_ok and param_ok):
            report.failed_points.append(i)
            logger.warning(
                f"Jacobian mismatch for {distortion!r} at point {point.tolist()}: "
                f"point error {point_error:.3g}, parameter error {param_error:.3g}"
            )

    return report
