"""
Transform composition: filtered pose + calibrated scale -> render transform.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from ..calibration.fitting import FitAdjustments
from ..core.config_loader import TransformConfig
from ..pose.estimate import PoseEstimate
from .handedness import Handedness


def _vec3(value) -> np.ndarray:
    arr = np.asarray(value, dtype=float).reshape(-1)
    if arr.size == 1:
        return np.full(3, float(arr[0]))
    return arr[:3].copy()


@dataclass
class AssetProfile:
    """Static per-asset placement parameters."""
    name: str = "default"
    product_type: str = "hat"
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation_offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    scale_multiplier: np.ndarray = field(default_factory=lambda: np.ones(3))

    def __post_init__(self):
        self.offset = _vec3(self.offset)
        self.rotation_offset = _vec3(self.rotation_offset)
        self.scale_multiplier = _vec3(self.scale_multiplier)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetProfile":
        return cls(**data)


@dataclass
class RenderTransform:
    position: np.ndarray
    rotation: np.ndarray  # render-space Euler (pitch, yaw, roll)
    scale: np.ndarray  # signed
    visible: bool = False
    alpha: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": [float(v) for v in self.position],
            "rotation": [float(v) for v in self.rotation],
            "scale": [float(v) for v in self.scale],
            "visible": bool(self.visible),
            "alpha": float(self.alpha),
        }


class TransformComposer:
    """
    Usage:
        composer = TransformComposer(config.transform, config.confidence.threshold)
        transform = composer.compose(pose, calibration.final_scale, asset)

        # with face-shape fitting
        fit = fitter.adjustments(pose.euler, pose.scale)
        transform = composer.compose(pose, calibration.final_scale, asset, fit)
    """

    def __init__(self, config: Optional[TransformConfig] = None, confidence_threshold: float = 0.5):
        self.config = config or TransformConfig()
        self.confidence_threshold = float(confidence_threshold)
        self.handedness = Handedness(mirror_x=self.config.mirror_x)

    def position(self, normalized_position, asset: Optional[AssetProfile] = None) -> np.ndarray:
        """Normalized (x, y, depth) -> world position."""
        x, y, depth = (float(v) for v in normalized_position)
        m = self.config.position_multiplier
        detector = np.array([
            (x - 0.5) * m,
            (y - 0.5) * m,
            depth * self.config.depth_sensitivity,
        ])
        world = self.handedness.position(detector)
        world[2] += self.config.depth_offset
        if asset is not None:
            world = world + asset.offset
        return world

    def rotation(self, euler, asset: Optional[AssetProfile] = None) -> np.ndarray:
        rot = self.handedness.rotation(euler)
        if asset is not None:
            rot = rot + asset.rotation_offset
        return rot

    def scale(self, calibrated_scale: float, asset: Optional[AssetProfile] = None) -> np.ndarray:
        s = self.handedness.scale(np.full(3, float(calibrated_scale)))
        if asset is not None:
            s = s * asset.scale_multiplier
        return s

    def is_visible(self, confidence: float) -> bool:
        return bool(confidence > self.confidence_threshold)

    def compose(
        self,
        pose: PoseEstimate,
        calibrated_scale: float,
        asset: Optional[AssetProfile] = None,
        fit: Optional[FitAdjustments] = None,
    ) -> RenderTransform:
        position = self.position(pose.position, asset)
        scale = self.scale(calibrated_scale, asset)
        alpha = 1.0
        if fit is not None:
            position = position + fit.offset
            scale = scale * fit.scale
            alpha = float(fit.alpha)
        return RenderTransform(
            position=position,
            rotation=self.rotation(pose.euler, asset),
            scale=scale,
            visible=self.is_visible(pose.confidence),
            alpha=alpha,
        )
