"""
Anthropometric scale calibration
================================

Estimates the model-to-world scale from observed head proportions:
- inter-eye, temple-to-temple and crown-to-chin pixel distances
- a single-constant monocular conversion to millimetres (average IPD and an
  assumed focal length in pixels)
- width / height factors against a reference adult head, averaged

The overall factor only gates the measurement (outside the safety band the
cycle is rejected); the accepted render scale is driven by the eye distance.
Results are cached and recomputed on a fixed frame cadence.
"""
import dataclasses
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from scipy.spatial import distance

from ..core.config_loader import CalibrationConfig
from ..core.constants import Constants
from ..core.errors import CalibrationOutOfBounds, InvalidMeasurement, TrackingError
from ..core.logger import logger
from ..landmarks import LandmarkSet


@dataclass
class ScaleCalibration:
    """
    One calibration result (or the default when is_fallback).

    Served until `valid_until_frame`; the calibrator measures again on the
    first eligible frame at or past it.
    """
    final_scale: float
    head_width_px: float = 0.0
    head_height_px: float = 0.0
    eye_distance_px: float = 0.0
    width_mm: float = 0.0
    height_mm: float = 0.0
    depth_mm: float = 0.0
    distance_mm: float = 0.0
    pixel_to_mm: float = 0.0
    width_factor: float = 1.0
    height_factor: float = 1.0
    overall_scale_factor: float = 1.0
    adaptive_factor: float = 1.0
    product_multiplier: float = 1.0
    bounds: Tuple[float, float] = (0.0005, 0.01)
    is_fallback: bool = False
    frame_index: int = -1
    valid_until_frame: int = 0

    def is_valid_at(self, frame_index: int) -> bool:
        return frame_index < self.valid_until_frame

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ScaleCalibrator:
    """
    Periodic, cached scale calibrator.

    Usage:
        calibrator = ScaleCalibrator(config.calibration, warmup_frames=5)
        cal = calibrator.maybe_calibrate(landmarks, frame_index, frames_tracked, "hat")
        scale = cal.final_scale
    """

    def __init__(self, config: Optional[CalibrationConfig] = None, warmup_frames: int = 5):
        self.config = config or CalibrationConfig()
        self.warmup_frames = max(0, int(warmup_frames))

        self.cache: Optional[ScaleCalibration] = None  # last accepted measurement
        self.served: Optional[ScaleCalibration] = None

        self.stats = {
            'attempts': 0,
            'accepted': 0,
            'rejected': 0,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def product_multiplier(self, product_type: Optional[str]) -> float:
        if not product_type:
            return Constants.DEFAULT_PRODUCT_MULTIPLIER
        return float(self.config.product_multipliers.get(
            str(product_type).lower(), Constants.DEFAULT_PRODUCT_MULTIPLIER
        ))

    def _clamp(self, value: float) -> float:
        return min(self.config.max_scale, max(self.config.min_scale, value))

    @property
    def bounds(self) -> Tuple[float, float]:
        return (self.config.min_scale, self.config.max_scale)

    def current(self, product_type: Optional[str] = None) -> ScaleCalibration:
        """Value currently served, or the default before the first attempt."""
        return self.served if self.served is not None else self.fallback(product_type=product_type)

    def fallback(self, frame_index: int = -1, product_type: Optional[str] = None) -> ScaleCalibration:
        """Default calibration built from base_scale."""
        multiplier = self.product_multiplier(product_type)
        return ScaleCalibration(
            final_scale=self._clamp(self.config.base_scale * multiplier),
            adaptive_factor=self.config.adaptive_factor,
            product_multiplier=multiplier,
            bounds=self.bounds,
            is_fallback=True,
            frame_index=frame_index,
            valid_until_frame=frame_index + self.config.interval_frames,
        )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def maybe_calibrate(
        self,
        landmarks: LandmarkSet,
        frame_index: int,
        frames_tracked: int,
        product_type: Optional[str] = None,
    ) -> ScaleCalibration:
        """Run calibrate() when due; otherwise return the cached value."""
        due = (
            self.config.enabled
            and frames_tracked >= self.warmup_frames
            and landmarks is not None
            and landmarks.is_complete
            and (self.served is None or not self.served.is_valid_at(frame_index))
        )
        if not due:
            return self.current(product_type)
        return self.calibrate(landmarks, frame_index, product_type)

    def calibrate(
        self,
        landmarks: LandmarkSet,
        frame_index: int = 0,
        product_type: Optional[str] = None,
    ) -> ScaleCalibration:
        """
        Measure now. A rejected measurement keeps serving the cached value (or
        the default) for another interval and is retried after it.
        """
        self.stats['attempts'] += 1

        try:
            result = self._measure(landmarks, frame_index, product_type)
        except CalibrationOutOfBounds as e:
            self.stats['rejected'] += 1
            logger.warning(f"Scale calibration rejected at frame {frame_index}: {e}")
            return self._extend(frame_index, product_type)
        except TrackingError as e:
            self.stats['rejected'] += 1
            logger.debug(f"Scale calibration skipped at frame {frame_index}: {e}")
            return self._extend(frame_index, product_type)

        self.stats['accepted'] += 1
        if self.cache is None:
            logger.info(
                f"Scale calibrated: factor={result.overall_scale_factor:.3f}, "
                f"eye={result.eye_distance_px:.1f}px, scale={result.final_scale:.5f}"
            )
        self.cache = result
        self.served = result
        return result

    def _extend(self, frame_index: int, product_type: Optional[str]) -> ScaleCalibration:
        kept = self.cache if self.cache is not None else self.fallback(frame_index, product_type)
        self.served = dataclasses.replace(
            kept, valid_until_frame=frame_index + self.config.interval_frames
        )
        return self.served

    def _measure(
        self,
        landmarks: LandmarkSet,
        frame_index: int,
        product_type: Optional[str],
    ) -> ScaleCalibration:
        cfg = self.config
        landmarks.validate(landmarks.groups.calibration_indices())

        left_eye, right_eye = landmarks.eye_centers()
        left_temple, right_temple = landmarks.temples()

        eye_px = distance.euclidean(left_eye[:2], right_eye[:2])
        width_px = distance.euclidean(left_temple[:2], right_temple[:2])
        height_px = distance.euclidean(landmarks.crown()[:2], landmarks.chin()[:2])

        for name, value in (("eye", eye_px), ("width", width_px), ("height", height_px)):
            if not math.isfinite(value) or value <= 0.0:
                raise InvalidMeasurement(f"{name} distance {value} px")

        pixel_to_mm = cfg.average_ipd_mm / eye_px
        distance_mm = cfg.average_ipd_mm * cfg.focal_length_px / eye_px
        width_mm = width_px * pixel_to_mm
        height_mm = height_px * pixel_to_mm

        width_factor = width_mm / cfg.reference_head_width_mm
        height_factor = height_mm / cfg.reference_head_height_mm
        overall = (width_factor + height_factor) / 2.0

        if not math.isfinite(overall) or not cfg.factor_min <= overall <= cfg.factor_max:
            raise CalibrationOutOfBounds(overall, (cfg.factor_min, cfg.factor_max))

        multiplier = self.product_multiplier(product_type)
        final = (
            cfg.base_scale
            * (eye_px / cfg.eye_distance_reference)
            * multiplier
            * cfg.adaptive_factor
        )

        return ScaleCalibration(
            final_scale=self._clamp(final),
            head_width_px=width_px,
            head_height_px=height_px,
            eye_distance_px=eye_px,
            width_mm=width_mm,
            height_mm=height_mm,
            depth_mm=cfg.reference_head_depth_mm,
            distance_mm=distance_mm,
            pixel_to_mm=pixel_to_mm,
            width_factor=width_factor,
            height_factor=height_factor,
            overall_scale_factor=overall,
            adaptive_factor=cfg.adaptive_factor,
            product_multiplier=multiplier,
            bounds=self.bounds,
            is_fallback=False,
            frame_index=frame_index,
            valid_until_frame=frame_index + cfg.interval_frames,
        )

    def invalidate(self) -> None:
        """Drop the cached value and recalibrate on the next eligible frame."""
        self.cache = None
        self.served = None

    def reset(self) -> None:
        self.cache = None
        self.served = None
        self.stats = {'attempts': 0, 'accepted': 0, 'rejected': 0}
