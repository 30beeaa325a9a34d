"""
Pose value objects passed between extractor, filters and composer.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from ..filtering.rotation import IDENTITY_QUATERNION


@dataclass
class RawPose:
    """Unfiltered per-frame pose measured from one landmark set."""
    position: np.ndarray  # (x/W, y/H, mean eye depth)
    euler: np.ndarray  # (pitch, yaw, roll) rad
    scale: np.ndarray  # uniform, 3 axes
    eye_distance_px: float
    left_eye: np.ndarray
    right_eye: np.ndarray
    landmark_count: int = 0


@dataclass
class PoseEstimate:
    """
    Filtered pose emitted to the consumer.

    Attributes:
        position: filtered normalized position + depth
        euler: filtered (pitch, yaw, roll) derived from `quaternion`
        quaternion: filtered unit orientation (w, x, y, z)
        scale: filtered measured scale
        confidence: [0, 1]
        timestamp_ms: time of the measurement the estimate is built from
        raw_position / raw_rotation / raw_scale: unfiltered measurement
    """
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    euler: np.ndarray = field(default_factory=lambda: np.zeros(3))
    quaternion: np.ndarray = field(default_factory=lambda: IDENTITY_QUATERNION.copy())
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    confidence: float = 0.0
    timestamp_ms: float = 0.0
    raw_position: Optional[np.ndarray] = None
    raw_rotation: Optional[np.ndarray] = None
    raw_scale: Optional[np.ndarray] = None

    def to_dict(self) -> Dict[str, Any]:
        def _list(v):
            return None if v is None else [float(x) for x in v]

        return {
            "position": _list(self.position),
            "euler": _list(self.euler),
            "quaternion": _list(self.quaternion),
            "scale": _list(self.scale),
            "confidence": float(self.confidence),
            "timestamp_ms": float(self.timestamp_ms),
            "raw_position": _list(self.raw_position),
            "raw_rotation": _list(self.raw_rotation),
            "raw_scale": _list(self.raw_scale),
        }
