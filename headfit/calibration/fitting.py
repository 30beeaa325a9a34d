"""
Face-shape fitting
==================

Classifies the head from its temple width / crown-to-chin height ratio:

    ratio > 0.90   round
    ratio > 0.75   oval
    ratio > 0.65   long
    otherwise      square

and turns the class into a scale multiplier and a vertical offset for the
asset. Per-frame adjustments then follow the head pose:
- yaw past 30 deg narrows the x scale and fades the asset
- pitch past 20 deg lifts the asset
- the offset is pushed back as the head moves away from the camera

Each frame also gets a 0-100 fit score: confidence (40), stabilization (30)
and viewing angle (30).
"""
import math
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Deque, Dict, List, Optional

import numpy as np

from ..core.config_loader import FittingConfig
from ..core.constants import Constants
from ..core.errors import InvalidMeasurement
from ..core.logger import logger
from ..landmarks import LandmarkGroups, LandmarkSet


@dataclass
class HeadMetrics:
    """Pixel extents of one head."""
    width: float
    height: float
    jawline_width: float
    forehead_width: float

    @classmethod
    def from_landmarks(cls, landmarks: LandmarkSet) -> "HeadMetrics":
        left_temple, right_temple = landmarks.temples()
        left_jaw, right_jaw = landmarks.jaw_corners()
        left_forehead, right_forehead = landmarks.forehead_sides()
        return cls(
            width=abs(float(right_temple[0] - left_temple[0])),
            height=abs(float(landmarks.crown()[1] - landmarks.chin()[1])),
            jawline_width=abs(float(right_jaw[0] - left_jaw[0])),
            forehead_width=abs(float(right_forehead[0] - left_forehead[0])),
        )

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.width, self.height, self.jawline_width, self.forehead_width))


def classify_morphology(width: float, height: float) -> str:
    if height <= Constants.EPS:
        raise InvalidMeasurement(f"head height {height} px")
    ratio = width / height
    if ratio > 0.9:
        return "round"
    if ratio > 0.75:
        return "oval"
    if ratio > 0.65:
        return "long"
    return "square"


def classify_head_size(width: float, height: float) -> str:
    mean_extent = (width + height) / 2.0
    if mean_extent < 80:
        return "small"
    if mean_extent < 120:
        return "medium"
    if mean_extent < 160:
        return "large"
    return "extra-large"


@dataclass
class FaceProfile:
    shape: str
    size_category: str
    width: float
    height: float
    ratio: float
    jawline_width: float
    forehead_width: float
    scale_multiplier: float
    y_offset: float
    samples: int
    frame_index: int = -1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FitAdjustments:
    """Multiplicative scale, additive render-space offset, opacity."""
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    alpha: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scale": [float(v) for v in self.scale],
            "offset": [float(v) for v in self.offset],
            "alpha": float(self.alpha),
        }


@dataclass
class FitQuality:
    score: float
    is_good: bool
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"score": float(self.score), "is_good": bool(self.is_good), "issues": list(self.issues)}


class SmartFitter:
    """
    Face-shape profile, pose-driven adjustments and fit scoring.

    Usage:
        fitter = SmartFitter(config.fitting, config.landmarks)

        # Each detected frame:
        fitter.observe(landmarks, confidence)
        if calibrator_ran_this_frame:
            fitter.update_profile(frame_index)
        adjustments = fitter.adjustments(pose.euler, pose.scale)
        quality = fitter.evaluate(confidence, stabilized, pose.euler)
    """

    def __init__(self, config: Optional[FittingConfig] = None, groups: Optional[LandmarkGroups] = None):
        self.config = config or FittingConfig()
        self.groups = groups or LandmarkGroups()

        self.samples: Deque[HeadMetrics] = deque(maxlen=max(1, self.config.sample_window))
        self.profile: Optional[FaceProfile] = None

        self.stats = {
            'total_frames': 0,
            'good_fit_frames': 0,
        }

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------
    def observe(self, landmarks: Optional[LandmarkSet], confidence: float) -> bool:
        """Sample head metrics from a confident, complete frame."""
        if landmarks is None or confidence <= self.config.min_confidence:
            return False
        if not landmarks.is_complete or not landmarks.has_indices(self.groups.fitting_indices()):
            return False

        metrics = HeadMetrics.from_landmarks(landmarks)
        if not metrics.is_finite() or metrics.height <= Constants.EPS:
            return False
        self.samples.append(metrics)
        return True

    def update_profile(self, frame_index: int = -1) -> Optional[FaceProfile]:
        """Re-classify from the buffered samples; keeps the old profile when there are too few."""
        if len(self.samples) < self.config.min_samples:
            return self.profile

        width = float(np.mean([m.width for m in self.samples]))
        height = float(np.mean([m.height for m in self.samples]))
        shape = classify_morphology(width, height)
        multiplier, y_offset = Constants.MORPHOLOGY_WEIGHTS[shape]

        previous = self.profile.shape if self.profile else None
        self.profile = FaceProfile(
            shape=shape,
            size_category=classify_head_size(width, height),
            width=width,
            height=height,
            ratio=width / height,
            jawline_width=float(np.mean([m.jawline_width for m in self.samples])),
            forehead_width=float(np.mean([m.forehead_width for m in self.samples])),
            scale_multiplier=multiplier,
            y_offset=y_offset,
            samples=len(self.samples),
            frame_index=frame_index,
        )
        if shape != previous:
            logger.info(
                f"Face profile: {shape} ({self.profile.size_category}), "
                f"ratio={self.profile.ratio:.3f}, samples={len(self.samples)}"
            )
        return self.profile

    # ------------------------------------------------------------------
    # Per-frame
    # ------------------------------------------------------------------
    def adjustments(self, euler, pose_scale=None) -> FitAdjustments:
        """Profile weights plus pose-driven corrections; neutral without a profile."""
        cfg = self.config
        fit = FitAdjustments()
        if self.profile is not None:
            fit.scale = np.full(3, self.profile.scale_multiplier)
            fit.offset = np.array([0.0, self.profile.y_offset, 0.0])

        pitch_deg = abs(math.degrees(float(euler[0])))
        yaw_deg = abs(math.degrees(float(euler[1])))

        if yaw_deg > cfg.yaw_threshold_deg:
            turn = min(1.0, (yaw_deg - cfg.yaw_threshold_deg) / cfg.yaw_range_deg)
            if self.profile is not None:
                fit.scale[0] *= 1.0 - turn * cfg.max_x_narrowing
            fit.alpha = 1.0 - turn * cfg.max_fade

        if self.profile is not None:
            if pitch_deg > cfg.pitch_threshold_deg:
                tilt = min(1.0, (pitch_deg - cfg.pitch_threshold_deg) / cfg.pitch_range_deg)
                fit.offset[1] += tilt * cfg.max_pitch_lift
            if pose_scale is not None:
                fit.offset[2] -= (1.0 - float(np.asarray(pose_scale, dtype=float).reshape(-1)[0])) * cfg.depth_gain

        return fit

    def evaluate(self, confidence: float, stabilized: bool, euler) -> FitQuality:
        """0-100 fit score; good at >= good_fit_score with no issues."""
        issues = []
        confidence = float(confidence)

        score = confidence * 40.0
        if confidence < 0.6:
            issues.append("low_confidence")

        score += 30.0 if stabilized else 15.0
        if not stabilized:
            issues.append("unstable")

        yaw_deg = abs(math.degrees(float(euler[1])))
        score += 30.0 if yaw_deg < 30.0 else max(0.0, 30.0 - (yaw_deg - 30.0))
        if yaw_deg > 45.0:
            issues.append("off_axis")

        quality = FitQuality(
            score=score,
            is_good=score >= self.config.good_fit_score and not issues,
            issues=issues,
        )
        self.stats['total_frames'] += 1
        if quality.is_good:
            self.stats['good_fit_frames'] += 1
        return quality

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def fit_rate(self) -> float:
        total = self.stats['total_frames']
        return self.stats['good_fit_frames'] / total if total else 0.0

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'fit_rate': self.fit_rate,
            'samples': len(self.samples),
            'morphology': self.profile.shape if self.profile else None,
        }

    def reset(self) -> None:
        self.samples.clear()
        self.profile = None
        self.stats = {'total_frames': 0, 'good_fit_frames': 0}
