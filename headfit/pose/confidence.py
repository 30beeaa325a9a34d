"""
Tracking confidence scoring.

Score starts at 1.0 and is multiplied by independent penalty factors:
landmark count, eye distance comfort range, frame-to-frame jitter, and the
residual between the raw and the filtered position. The raw
product is then blended against the rolling average and ramped during the
warm-up window. Confidence only gates visibility; filters never read it.
"""
import math
from collections import deque
from typing import Deque, Optional

import numpy as np

from ..core.config_loader import ConfidenceConfig
from ..core.constants import Constants
from ..landmarks import LandmarkGroups, LandmarkSet


class ConfidenceScorer:
    """
    Usage:
        scorer = ConfidenceScorer(config.confidence, config.landmarks)
        conf = scorer.score(len(landmarks), raw.eye_distance_px, landmarks)
        visible = conf > config.confidence.threshold
    """

    def __init__(
        self,
        config: Optional[ConfidenceConfig] = None,
        groups: Optional[LandmarkGroups] = None,
    ):
        self.config = config or ConfidenceConfig()
        self.groups = groups or LandmarkGroups()

        self.history: Deque[float] = deque(maxlen=max(1, self.config.history_size))
        self.frames_scored = 0
        self._prev_sample: Optional[np.ndarray] = None
        self.last_factors = {}

    # ------------------------------------------------------------------
    # Individual factors
    # ------------------------------------------------------------------
    def count_factor(self, landmark_count) -> float:
        try:
            n = int(landmark_count)
        except (TypeError, ValueError):
            return 0.0
        if n >= self.groups.full_count:
            return 1.0
        if n >= self.groups.required_count:
            return 0.9
        if n >= Constants.PARTIAL_LANDMARK_TIER:
            return 0.7
        if n > 0:
            return 0.4
        return 0.0

    def distance_factor(self, eye_distance_px) -> float:
        try:
            d = float(eye_distance_px)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(d) or d <= 0.0:
            return 0.0

        lo = self.config.min_eye_distance_px
        hi = self.config.max_eye_distance_px
        if d < lo:
            # Too far from the camera
            return 0.5 + 0.5 * d / lo
        if d > hi:
            # Too close
            return max(0.5, hi / d)
        return 1.0

    def jitter_factor(self, landmarks: Optional[LandmarkSet], eye_distance_px) -> float:
        """Mean displacement of the sampled subset, relative to eye distance."""
        if landmarks is None or not landmarks.has_indices(self.groups.jitter_sample):
            self._prev_sample = None
            return 1.0

        sample = landmarks.points[list(self.groups.jitter_sample), :2]
        prev, self._prev_sample = self._prev_sample, sample.copy()
        if prev is None or prev.shape != sample.shape:
            return 1.0

        try:
            d = float(eye_distance_px)
        except (TypeError, ValueError):
            return 1.0
        if not math.isfinite(d) or d <= Constants.EPS:
            return 1.0

        displacement = float(np.mean(np.linalg.norm(sample - prev, axis=1)))
        if not math.isfinite(displacement):
            return self.config.min_jitter_factor

        excess = displacement / d - self.config.jitter_tolerance
        if excess <= 0.0:
            return 1.0
        return max(self.config.min_jitter_factor, 1.0 - self.config.jitter_gain * excess)

    def residual_factor(self, raw_position, filtered_position) -> float:
        """Penalty for a filtered position lagging the raw one (normalized x/y units)."""
        if raw_position is None or filtered_position is None:
            return 1.0
        raw = np.asarray(raw_position, dtype=float).reshape(-1)[:2]
        filtered = np.asarray(filtered_position, dtype=float).reshape(-1)[:2]
        residual = float(np.linalg.norm(raw - filtered))
        if not math.isfinite(residual):
            return self.config.min_residual_factor

        excess = residual - self.config.residual_tolerance
        if excess <= 0.0:
            return 1.0
        return max(self.config.min_residual_factor, 1.0 - self.config.residual_gain * excess)

    def warmup_factor(self) -> float:
        frames = self.config.stabilization_frames
        if frames <= 0:
            return 1.0
        return min(1.0, (self.frames_scored + 1) / frames)

    # ------------------------------------------------------------------
    # Combined score
    # ------------------------------------------------------------------
    def score(
        self,
        landmark_count,
        eye_distance_px,
        landmarks: Optional[LandmarkSet] = None,
        raw_position=None,
        filtered_position=None,
    ) -> float:
        """Score one frame; always returns a value in [0, 1]."""
        count = self.count_factor(landmark_count)
        distance = self.distance_factor(eye_distance_px)
        jitter = self.jitter_factor(landmarks, eye_distance_px)
        residual = self.residual_factor(raw_position, filtered_position)

        raw = count * distance * jitter * residual
        if not math.isfinite(raw):
            raw = 0.0

        if self.history:
            avg = float(np.mean(self.history))
            weight = float(np.clip(
                self.config.blend_base + abs(raw - avg), 0.0, self.config.blend_max
            ))
            blended = avg + weight * (raw - avg)
        else:
            blended = raw
        self.history.append(blended)

        warmup = self.warmup_factor()
        self.frames_scored += 1

        self.last_factors = {
            "count": count,
            "distance": distance,
            "jitter": jitter,
            "residual": residual,
            "raw": raw,
            "blended": blended,
            "warmup": warmup,
        }
        return float(np.clip(blended * warmup, 0.0, 1.0))

    def average(self) -> float:
        return float(np.mean(self.history)) if self.history else 0.0

    def is_unstable(self) -> bool:
        if len(self.history) < 2:
            return False
        return float(np.std(self.history)) > self.config.instability_std

    def reset(self) -> None:
        self.history.clear()
        self.frames_scored = 0
        self._prev_sample = None
        self.last_factors = {}
