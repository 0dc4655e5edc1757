"""Per-frame data containers."""

from .visual_frame import Channel, VisualFrame

__all__ = [
    "Channel",
    "VisualFrame",
]
