"""Per-frame container for keypoints, descriptors and images."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)

KEYPOINT_MEASUREMENTS = "VISUAL_KEYPOINT_MEASUREMENTS"
KEYPOINT_MEASUREMENT_UNCERTAINTIES = "VISUAL_KEYPOINT_MEASUREMENT_UNCERTAINTIES"
KEYPOINT_ORIENTATIONS = "VISUAL_KEYPOINT_ORIENTATIONS"
KEYPOINT_SCALES = "VISUAL_KEYPOINT_SCALES"
BRISK_DESCRIPTORS = "BRISK_DESCRIPTORS"
RAW_IMAGE = "RAW_IMAGE"


@dataclass
class Channel:
    """Named, typed slot holding one kind of per-frame data."""

    name: str
    channel_type: type
    value: Any


def _default_value(channel_type: type) -> Any:
    if issubclass(channel_type, np.ndarray):
        return np.zeros(0)
    return channel_type()


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


class VisualFrame:
    """Keypoint measurements, descriptors and image of a single camera frame.

    Data lives in named channels. Built-in channels are created on first
    write; reading one that was never written raises KeyError. Immutable
    getters return read-only views of the stored arrays, mutable getters
    return the arrays themselves, so both always share storage.
    """

    def __init__(self):
        self._channels: Dict[str, Channel] = {}
        self._camera_geometry: Optional[Any] = None

    def set_camera_geometry(self, camera: Optional[Any]) -> None:
        """Set the camera model observing this frame."""
        self._camera_geometry = camera

    def get_camera_geometry(self) -> Optional[Any]:
        """Get the camera model, None if unset."""
        return self._camera_geometry

    # Named channels

    def has_channel(self, name: str) -> bool:
        """Check if a channel exists."""
        return name in self._channels

    def add_channel(self, name: str, channel_type: type) -> None:
        """Create a channel holding a default-constructed value of channel_type."""
        if name in self._channels:
            existing = self._channels[name].channel_type
            raise ValueError(
                f"Channel '{name}' already exists with type {existing.__name__}"
            )
        self._channels[name] = Channel(name, channel_type, _default_value(channel_type))
        logger.debug(f"Added channel '{name}' of type {channel_type.__name__}")

    def set_channel_data(self, name: str, value: Any) -> None:
        """Store value in an existing channel."""
        channel = self._get_channel(name)
        if not isinstance(value, channel.channel_type):
            raise TypeError(
                f"Channel '{name}' holds {channel.channel_type.__name__}, "
                f"got {type(value).__name__}"
            )
        channel.value = value

    def get_channel_data(self, name: str, channel_type: type) -> Any:
        """Get the value of a channel, checking its declared type."""
        channel = self._get_channel(name)
        if channel.channel_type is not channel_type:
            raise TypeError(
                f"Channel '{name}' holds {channel.channel_type.__name__}, "
                f"requested {channel_type.__name__}"
            )
        return channel.value

    def _get_channel(self, name: str) -> Channel:
        try:
            return self._channels[name]
        except KeyError:
            raise KeyError(f"Channel '{name}' does not exist") from None

    def _set_array(self, name: str, data: np.ndarray) -> None:
        if not self.has_channel(name):
            self.add_channel(name, np.ndarray)
        self.set_channel_data(name, data)

    def _get_array_mutable(self, name: str) -> np.ndarray:
        return self.get_channel_data(name, np.ndarray)

    def _get_array(self, name: str) -> np.ndarray:
        return _read_only(self._get_array_mutable(name))

    def _set_vector(self, name: str, data: np.ndarray) -> None:
        data = np.array(data, dtype=float)
        if data.ndim != 1:
            raise ValueError(f"{name} must be 1-D array, got shape {data.shape}")
        self._set_array(name, data)

    # Keypoint measurements

    def set_keypoint_measurements(self, measurements: np.ndarray) -> None:
        """Set keypoint measurements as a 2xN array of image coordinates."""
        measurements = np.array(measurements, dtype=float)
        if measurements.ndim != 2 or measurements.shape[0] != 2:
            raise ValueError(
                f"keypoint measurements must be 2xN array, got shape {measurements.shape}"
            )
        self._set_array(KEYPOINT_MEASUREMENTS, measurements)

    def get_keypoint_measurements(self) -> np.ndarray:
        return self._get_array(KEYPOINT_MEASUREMENTS)

    def get_keypoint_measurements_mutable(self) -> np.ndarray:
        return self._get_array_mutable(KEYPOINT_MEASUREMENTS)

    def get_keypoint_measurement(self, index: int) -> np.ndarray:
        """Get keypoint index as a read-only 2-element view."""
        return self.get_keypoint_measurements()[:, index]

    def get_num_keypoint_measurements(self) -> int:
        if not self.has_channel(KEYPOINT_MEASUREMENTS):
            return 0
        return self.get_keypoint_measurements().shape[1]

    # Keypoint measurement uncertainties

    def set_keypoint_measurement_uncertainties(self, uncertainties: np.ndarray) -> None:
        self._set_vector(KEYPOINT_MEASUREMENT_UNCERTAINTIES, uncertainties)

    def get_keypoint_measurement_uncertainties(self) -> np.ndarray:
        return self._get_array(KEYPOINT_MEASUREMENT_UNCERTAINTIES)

    def get_keypoint_measurement_uncertainties_mutable(self) -> np.ndarray:
        return self._get_array_mutable(KEYPOINT_MEASUREMENT_UNCERTAINTIES)

    def get_keypoint_measurement_uncertainty(self, index: int) -> float:
        return float(self.get_keypoint_measurement_uncertainties()[index])

    # Keypoint orientations

    def set_keypoint_orientations(self, orientations: np.ndarray) -> None:
        self._set_vector(KEYPOINT_ORIENTATIONS, orientations)

    def get_keypoint_orientations(self) -> np.ndarray:
        return self._get_array(KEYPOINT_ORIENTATIONS)

    def get_keypoint_orientations_mutable(self) -> np.ndarray:
        return self._get_array_mutable(KEYPOINT_ORIENTATIONS)

    def get_keypoint_orientation(self, index: int) -> float:
        return float(self.get_keypoint_orientations()[index])

    # Keypoint scales

    def set_keypoint_scales(self, scales: np.ndarray) -> None:
        self._set_vector(KEYPOINT_SCALES, scales)

    def get_keypoint_scales(self) -> np.ndarray:
        return self._get_array(KEYPOINT_SCALES)

    def get_keypoint_scales_mutable(self) -> np.ndarray:
        return self._get_array_mutable(KEYPOINT_SCALES)

    def get_keypoint_scale(self, index: int) -> float:
        return float(self.get_keypoint_scales()[index])

    # Binary descriptors

    def set_brisk_descriptors(self, descriptors: np.ndarray) -> None:
        """Set descriptors as a (bytes x N) uint8 array, one column per keypoint."""
        descriptors = np.array(descriptors, dtype=np.uint8)
        if descriptors.ndim != 2:
            raise ValueError(
                f"descriptors must be 2-D array, got shape {descriptors.shape}"
            )
        self._set_array(BRISK_DESCRIPTORS, descriptors)

    def get_brisk_descriptors(self) -> np.ndarray:
        return self._get_array(BRISK_DESCRIPTORS)

    def get_brisk_descriptors_mutable(self) -> np.ndarray:
        return self._get_array_mutable(BRISK_DESCRIPTORS)

    def get_brisk_descriptor(self, index: int) -> np.ndarray:
        """Get the descriptor of keypoint index as a read-only column view."""
        return self.get_brisk_descriptors()[:, index]

    # Raw image

    def set_image(self, image: np.ndarray) -> None:
        image = np.array(image)
        if image.ndim not in (2, 3):
            raise ValueError(f"image must be HxW or HxWxC array, got shape {image.shape}")
        self._set_array(RAW_IMAGE, image)

    def get_image(self) -> np.ndarray:
        return self._get_array(RAW_IMAGE)

    def get_image_mutable(self) -> np.ndarray:
        return self._get_array_mutable(RAW_IMAGE)
