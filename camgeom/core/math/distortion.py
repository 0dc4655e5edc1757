"""Lens distortion models operating on normalized image coordinates."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

ParameterLike = Union[float, Sequence[float], np.ndarray]


class DistortionType(str, Enum):
    """Discriminator for the closed set of distortion variants."""

    NONE = "none"
    FISHEYE = "fisheye"


@dataclass(frozen=True)
class DistortionTolerances:
    """Branch thresholds for the closed-form distortion models.

    The squared thresholds are exclusive: a value exactly at the threshold
    takes the general branch. The angle bound is inclusive.
    """

    w_squared_threshold: float = 1e-5
    radius_squared_threshold: float = 1e-5
    max_valid_angle: float = 89.0 * np.pi / 180.0


def _as_point(point) -> np.ndarray:
    """Convert input to a float 2-vector, always as a fresh copy."""
    point = np.array(point, dtype=float)
    if point.shape != (2,):
        raise ValueError(f"point must be 2-element vector, got shape {point.shape}")
    return point


def _check_buffer(point: np.ndarray) -> None:
    """Check that a caller buffer can be updated in place."""
    if not isinstance(point, np.ndarray):
        raise ValueError(f"point must be a numpy array, got {type(point).__name__}")
    if point.shape != (2,):
        raise ValueError(f"point must be 2-element vector, got shape {point.shape}")
    if not np.issubdtype(point.dtype, np.floating):
        raise ValueError(f"point must have a floating dtype, got {point.dtype}")


def _as_points(points) -> np.ndarray:
    points = np.array(points, dtype=float)
    if points.ndim != 2 or points.shape[1] != 2:
        raise ValueError(f"points must be Nx2 array, got shape {points.shape}")
    return points


class Distortion(ABC):
    """Base class for distortion variants.

    Every variant exposes the same capability set (distort, undistort,
    distort_parameter_jacobian, get_parameters and equality) so a camera
    model can dispatch to any of them. The parameter vector is read-only;
    reconfiguration replaces it wholesale through set_parameters.
    """

    distortion_type: DistortionType
    num_parameters: int = 0

    def __init__(self, parameters: Optional[ParameterLike] = None):
        self._parameters = self._validate_parameters(parameters)

    @classmethod
    def _validate_parameters(cls, parameters: Optional[ParameterLike]) -> np.ndarray:
        if parameters is None:
            parameters = []
        params = np.array(np.atleast_1d(parameters), dtype=float)
        if params.shape != (cls.num_parameters,):
            raise ValueError(
                f"{cls.__name__} expects {cls.num_parameters} parameters, "
                f"got shape {params.shape}"
            )
        if not np.all(np.isfinite(params)):
            raise ValueError(f"Distortion parameters must be finite, got {params}")
        params.flags.writeable = False
        return params

    @property
    def parameters(self) -> np.ndarray:
        """Read-only view of the parameter vector."""
        return self._parameters

    def get_parameters(self) -> np.ndarray:
        """Get a copy of the parameter vector."""
        return self._parameters.copy()

    def set_parameters(self, parameters: ParameterLike) -> None:
        """Replace the parameter vector.

        Not synchronized: callers must not reconfigure while other threads
        are distorting with this instance.
        """
        self._parameters = self._validate_parameters(parameters)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Distortion):
            return False
        if self.distortion_type != other.distortion_type:
            return False
        return bool(np.array_equal(self._parameters, other._parameters))

    def __repr__(self) -> str:
        params = ", ".join(repr(float(p)) for p in self._parameters)
        return f"{type(self).__name__}([{params}])"

    def distort(self, point, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Distort a point, leaving the input untouched.

        Args:
            point: Undistorted normalized coordinates [x, y]
            out: Optional 2-element float buffer receiving the result

        Returns:
            Distorted point (``out`` when given)
        """
        result = self._prepare_output(point, out)
        self._distort_inplace(result, False)
        return result

    def distort_inplace(
        self,
        point: np.ndarray,
        compute_jacobian: bool = False
    ) -> Optional[np.ndarray]:
        """Distort a point buffer in place.

        Args:
            point: 2-element float array, overwritten with the distorted point
            compute_jacobian: Also compute d(distorted)/d(undistorted)

        Returns:
            2x2 point Jacobian if requested, otherwise None
        """
        _check_buffer(point)
        return self._distort_inplace(point, compute_jacobian)

    def distort_with_jacobian(self, point) -> Tuple[np.ndarray, np.ndarray]:
        """Distort a point and return it together with its 2x2 point Jacobian."""
        result = _as_point(point)
        jacobian = self._distort_inplace(result, True)
        return result, jacobian

    def undistort(self, point, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Undistort a point, leaving the input untouched.

        Out-of-domain points come back non-finite; check with np.isfinite.
        """
        result = self._prepare_output(point, out)
        self._undistort_inplace(result)
        return result

    def undistort_inplace(self, point: np.ndarray) -> None:
        """Undistort a point buffer in place."""
        _check_buffer(point)
        self._undistort_inplace(point)

    def distort_parameter_jacobian(
        self,
        point,
        out: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """Jacobian of the distorted point with respect to the parameters.

        Args:
            point: Undistorted normalized coordinates [x, y]
            out: Optional preallocated 2xP buffer, P = number of parameters

        Returns:
            2xP Jacobian matrix
        """
        point = _as_point(point)
        expected_shape = (2, self.num_parameters)
        if out is None:
            out = np.zeros(expected_shape)
        elif out.shape != expected_shape:
            raise ValueError(
                f"out must have shape {expected_shape}, got shape {out.shape}"
            )
        self._parameter_jacobian(point, out)
        return out

    def distort_points(self, points) -> np.ndarray:
        """Distort an Nx2 array of points."""
        return self._distort_points(_as_points(points))

    def undistort_points(self, points) -> np.ndarray:
        """Undistort an Nx2 array of points."""
        return self._undistort_points(_as_points(points))

    @staticmethod
    def _prepare_output(point, out: Optional[np.ndarray]) -> np.ndarray:
        source = _as_point(point)
        if out is None:
            return source
        _check_buffer(out)
        out[:] = source
        return out

    @abstractmethod
    def _distort_inplace(
        self,
        point: np.ndarray,
        compute_jacobian: bool
    ) -> Optional[np.ndarray]:
        pass

    @abstractmethod
    def _undistort_inplace(self, point: np.ndarray) -> None:
        pass

    @abstractmethod
    def _parameter_jacobian(self, point: np.ndarray, out: np.ndarray) -> None:
        pass

    @abstractmethod
    def _distort_points(self, points: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def _undistort_points(self, points: np.ndarray) -> np.ndarray:
        pass


class NullDistortion(Distortion):
    """Identity distortion for lenses without measurable distortion."""

    distortion_type = DistortionType.NONE
    num_parameters = 0

    def __init__(self):
        super().__init__([])

    def _distort_inplace(self, point, compute_jacobian):
        if compute_jacobian:
            return np.eye(2)
        return None

    def _undistort_inplace(self, point):
        pass

    def _parameter_jacobian(self, point, out):
        pass

    def _distort_points(self, points):
        return points

    def _undistort_points(self, points):
        return points


class FisheyeDistortion(Distortion):
    """Single-parameter field-of-view fisheye model.

    A normalized point at radius r_u is moved along its direction to the
    radius atan(2 tan(w/2) r_u) / w. The inverse maps a distorted radius r_d
    to tan(r_d w) / (2 tan(w/2)). In the forward direction both limits
    w -> 0 and r_u -> 0 are handled by dedicated branches selected with the
    thresholds in DistortionTolerances. The inverse uses the closed form for
    every nonzero r_d w inside max_valid_angle and scales by +inf beyond it.
    """

    distortion_type = DistortionType.FISHEYE
    num_parameters = 1

    # Advisory range used by are_parameters_valid
    min_valid_w = 0.5
    max_valid_w = 1.5

    def __init__(
        self,
        w: ParameterLike,
        tolerances: Optional[DistortionTolerances] = None
    ):
        """Initialize fisheye distortion.

        Args:
            w: Field-of-view parameter, as a scalar or 1-element vector
            tolerances: Branch thresholds, defaults to DistortionTolerances()
        """
        super().__init__(w)
        self.tolerances = tolerances or DistortionTolerances()

    @property
    def w(self) -> float:
        """Field-of-view parameter."""
        return float(self._parameters[0])

    @classmethod
    def are_parameters_valid(cls, parameters: ParameterLike) -> bool:
        """Check whether parameters describe a physically plausible lens."""
        params = np.atleast_1d(np.asarray(parameters, dtype=float))
        if params.shape != (cls.num_parameters,) or not np.isfinite(params[0]):
            return False
        return bool(cls.min_valid_w <= params[0] <= cls.max_valid_w)

    @classmethod
    def create_test_distortion(cls) -> "FisheyeDistortion":
        return cls(1.1)

    def _distort_inplace(self, point, compute_jacobian):
        w = self._parameters[0]
        u = point[0]
        v = point[1]
        r_u = np.sqrt(u * u + v * v)
        tanwhalf = np.tan(w / 2.0)
        atan_wrd = np.arctan(2.0 * tanwhalf * r_u)

        if w * w < self.tolerances.w_squared_threshold:
            # Limit w -> 0
            r_rd = 1.0
        elif r_u * r_u < self.tolerances.radius_squared_threshold:
            # Limit r_u -> 0
            r_rd = 2.0 * tanwhalf / w
        else:
            r_rd = atan_wrd / (r_u * w)

        jacobian = None
        if compute_jacobian:
            jacobian = self._point_jacobian(w, u, v, r_u, tanwhalf, atan_wrd)

        point *= r_rd
        return jacobian

    def _point_jacobian(
        self,
        w: float,
        u: float,
        v: float,
        r_u: float,
        tanwhalf: float,
        atan_wrd: float
    ) -> np.ndarray:
        """Evaluate d(distorted)/d(undistorted) at the undistorted point (u, v)."""
        if w * w < self.tolerances.w_squared_threshold:
            return np.eye(2)
        if r_u * r_u < self.tolerances.radius_squared_threshold:
            # Scale factor no longer depends on r_u
            return np.eye(2) * (2.0 * tanwhalf / w)

        tanwhalfsq = tanwhalf * tanwhalf
        r_u_cubed = r_u * r_u * r_u
        denominator = w * (u * u + v * v) * (4 * tanwhalfsq * (u * u + v * v) + 1)

        duf_du = (atan_wrd / (w * r_u)
                  - (u * u * atan_wrd) / (w * r_u_cubed)
                  + (2 * u * u * tanwhalf) / denominator)
        duf_dv = ((2 * u * v * tanwhalf) / denominator
                  - (u * v * atan_wrd) / (w * r_u_cubed))
        dvf_du = duf_dv
        dvf_dv = (atan_wrd / (w * r_u)
                  - (v * v * atan_wrd) / (w * r_u_cubed)
                  + (2 * v * v * tanwhalf) / denominator)

        return np.array([
            [duf_du, duf_dv],
            [dvf_du, dvf_dv]
        ])

    def _undistort_inplace(self, point):
        w = self._parameters[0]
        mul2tanwby2 = np.tan(w / 2.0) * 2.0
        r_d = np.sqrt(point[0] * point[0] + point[1] * point[1])

        if abs(r_d * w) > self.tolerances.max_valid_angle:
            logger.debug(f"Distorted radius {r_d:.6g} outside valid field of view for w={w:.6g}")
            r_u = np.inf
        elif r_d * w == 0.0:
            # 0/0 in the closed form, the point is left unchanged
            r_u = 1.0
        else:
            r_u = np.tan(r_d * w) / (r_d * mul2tanwby2)

        with np.errstate(invalid="ignore"):
            point *= r_u

    def _parameter_jacobian(self, point, out):
        """Fill d(distorted)/dw.

        Inside the small-radius branch both rows carry the derivative of the
        radial scale factor 2 tan(w/2) / w itself.
        """
        w = self._parameters[0]
        tanwhalf = np.tan(w / 2.0)
        tanwhalfsq = tanwhalf * tanwhalf
        u = point[0]
        v = point[1]
        r_u = np.sqrt(u * u + v * v)
        atan_wrd = np.arctan(2.0 * tanwhalf * r_u)

        if w * w < self.tolerances.w_squared_threshold:
            out[:] = 0.0
        elif r_u * r_u < self.tolerances.radius_squared_threshold:
            out[:] = (w - np.sin(w)) / (w * w * np.cos(w / 2) * np.cos(w / 2))
        else:
            out[0, 0] = ((2 * u * (tanwhalfsq / 2 + 0.5))
                         / (w * (4 * tanwhalfsq * r_u * r_u + 1))
                         - (u * atan_wrd) / (w * w * r_u))
            out[1, 0] = ((2 * v * (tanwhalfsq / 2 + 0.5))
                         / (w * (4 * tanwhalfsq * r_u * r_u + 1))
                         - (v * atan_wrd) / (w * w * r_u))

    def _distort_points(self, points):
        w = self._parameters[0]
        if w * w < self.tolerances.w_squared_threshold:
            return points

        tanwhalf = np.tan(w / 2.0)
        r_u = np.sqrt(points[:, 0] * points[:, 0] + points[:, 1] * points[:, 1])
        general = r_u * r_u >= self.tolerances.radius_squared_threshold

        scale = np.full(len(points), 2.0 * tanwhalf / w)
        scale[general] = np.arctan(2.0 * tanwhalf * r_u[general]) / (r_u[general] * w)

        points *= scale[:, np.newaxis]
        return points

    def _undistort_points(self, points):
        w = self._parameters[0]
        mul2tanwby2 = np.tan(w / 2.0) * 2.0
        r_d = np.sqrt(points[:, 0] * points[:, 0] + points[:, 1] * points[:, 1])

        out_of_range = np.abs(r_d * w) > self.tolerances.max_valid_angle
        unchanged = ~out_of_range & (r_d * w == 0.0)
        general = ~(out_of_range | unchanged)

        scale = np.empty(len(points))
        scale[out_of_range] = np.inf
        scale[unchanged] = 1.0
        scale[general] = np.tan(r_d[general] * w) / (r_d[general] * mul2tanwby2)

        if np.any(out_of_range):
            logger.debug(
                f"{int(np.sum(out_of_range))} of {len(points)} points outside "
                f"valid field of view for w={w:.6g}"
            )

        with np.errstate(invalid="ignore"):
            points *= scale[:, np.newaxis]
        return points
