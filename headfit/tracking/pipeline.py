"""
Head Tracking Pipeline
======================

One pipeline per tracked subject. Each update runs one
detect -> extract -> filter -> score -> compose cycle.

State machine:
    UNINITIALIZED -> CALIBRATING   first usable detection
    CALIBRATING   -> STABLE        after stabilization_frames detections
    any           -> LOST          max_missed_frames consecutive misses,
                                   or lost_timeout_ms without a detection
    LOST          -> CALIBRATING   detection resumes

Miss policy:
- a miss (no detection, or a frame skipped for bad landmarks) holds the last
  pose and visibility with fresh=False
- filters and confidence history are reset once, on the transition to LOST
  (reset_filters_on_miss=True resets the filters on every miss instead)
- nothing is visible while LOST

Face-shape fitting (fitting.enabled): head metrics are sampled on confident
frames, the face profile is re-classified whenever the calibrator runs, and
every detected frame gets pose-driven adjustments and a fit score.
"""
from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..calibration import FitQuality, ScaleCalibration, ScaleCalibrator, SmartFitter
from ..core.config_loader import TrackingConfig
from ..core.errors import InvalidMeasurement, LandmarksInsufficient, TrackingLost
from ..core.logger import logger
from ..filtering import (
    QuaternionKalmanFilter,
    Vector3KalmanFilter,
    euler_to_quaternion,
    quaternion_to_euler,
)
from ..landmarks import LandmarkSet
from ..monitoring import UpdateRateMonitor
from ..pose import ConfidenceScorer, PoseEstimate, PoseExtractor
from ..render import AssetProfile, RenderTransform, TransformComposer


class TrackingState(Enum):
    """Pipeline state machine"""
    UNINITIALIZED = "uninitialized"
    CALIBRATING = "calibrating"  # warm-up, filters converging
    STABLE = "stable"
    LOST = "lost"


@dataclass
class PipelineOutput:
    """
    Per-update result handed to the consumer.

    Attributes:
        frame_index: update counter (0-based)
        state: state after this update
        pose: filtered pose; on a miss the held pose (None before any detection)
        transform: render transform for `pose`
        visible: whether the consumer should draw the asset
        fresh: True only when this update consumed a new detection
        tracking_lost: True on the update that entered LOST
        error: code of the error that caused a skipped frame, if any
        fit_quality: face-shape fit score of this update (fitting enabled only)
    """
    frame_index: int
    state: TrackingState
    pose: Optional[PoseEstimate] = None
    transform: Optional[RenderTransform] = None
    visible: bool = False
    fresh: bool = False
    tracking_lost: bool = False
    error: Optional[str] = None
    calibration: Optional[ScaleCalibration] = None
    timestamp_ms: float = 0.0
    fit_quality: Optional[FitQuality] = None


class HeadTrackingPipeline:
    """
    Usage:
        pipeline = HeadTrackingPipeline(get_config(), AssetProfile("cap", "cap"))

        # Each frame:
        output = pipeline.update(landmarks_or_none, 640, 480, timestamp_ms)
        if output is not None and output.visible:
            draw(output.transform)
    """

    def __init__(
        self,
        config: Optional[TrackingConfig] = None,
        asset: Optional[AssetProfile] = None,
    ):
        self.config = config or TrackingConfig()
        self.asset = asset or AssetProfile()

        cfg = self.config
        self.extractor = PoseExtractor(cfg.pose, cfg.landmarks)
        self.position_filter = Vector3KalmanFilter(
            cfg.kalman.position.process_noise,
            cfg.kalman.position.measurement_noise,
            cfg.kalman.history_size,
        )
        self.rotation_filter = QuaternionKalmanFilter(
            cfg.kalman.rotation.process_noise,
            cfg.kalman.rotation.measurement_noise,
            cfg.kalman.history_size,
        )
        self.scale_filter = Vector3KalmanFilter(
            cfg.kalman.scale.process_noise,
            cfg.kalman.scale.measurement_noise,
            cfg.kalman.history_size,
        )
        self.scorer = ConfidenceScorer(cfg.confidence, cfg.landmarks)
        self.calibrator = ScaleCalibrator(cfg.calibration, cfg.confidence.stabilization_frames)
        self.fitter = SmartFitter(cfg.fitting, cfg.landmarks)
        self.composer = TransformComposer(cfg.transform, cfg.confidence.threshold)
        self.rate_monitor = UpdateRateMonitor()

        self.running = True
        self._reset_state()

        logger.info(
            f"HeadTrackingPipeline initialized: asset={self.asset.name}, "
            f"stabilization={cfg.confidence.stabilization_frames}f, "
            f"lost_timeout={cfg.loss.lost_timeout_ms}ms, "
            f"max_missed={cfg.loss.max_missed_frames}"
        )

    def _reset_state(self):
        self.state = TrackingState.UNINITIALIZED
        self.frame_index = 0
        self.frames_tracked = 0
        self.missed_frames = 0
        self.first_update_ms: Optional[float] = None
        self.last_detection_ms: Optional[float] = None

        self.last_pose: Optional[PoseEstimate] = None
        self.last_transform: Optional[RenderTransform] = None
        self.last_visible = False
        self.last_calibration: Optional[ScaleCalibration] = None

        # Statistics
        self.detections_total = 0
        self.misses_total = 0
        self.skipped_total = 0
        self.lost_events = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def stop(self):
        """Halt updates and drop all estimator state."""
        self.running = False
        self.reset()
        logger.info("[Pipeline] Stopped")

    def start(self):
        """Resume updates after stop()."""
        if self.running:
            return
        self.running = True
        logger.info("[Pipeline] Started")

    def reset(self):
        """Reset filters, scorer, calibrator, fitter and the state machine."""
        self._reset_filters()
        self.scorer.reset()
        self.calibrator.reset()
        self.fitter.reset()
        self.rate_monitor.reset()
        self._reset_state()

    def _reset_filters(self):
        self.position_filter.reset()
        self.rotation_filter.reset()
        self.scale_filter.reset()

    def set_asset(self, asset: AssetProfile):
        """Swap the overlay asset; the scale is recalibrated for its product type."""
        self.asset = asset
        self.calibrator.invalidate()
        logger.info(f"[Pipeline] Asset set: {asset.name} ({asset.product_type})")

    # ------------------------------------------------------------------
    # Per-frame update
    # ------------------------------------------------------------------
    def update(
        self,
        landmarks: Any,
        frame_width: float,
        frame_height: float,
        timestamp_ms: Optional[float] = None,
    ) -> Optional[PipelineOutput]:
        """
        Process one tick.

        Args:
            landmarks: LandmarkSet, raw landmark points, or None for
                       "no measurement this tick"
            frame_width / frame_height: frame size in pixels
            timestamp_ms: tick time; defaults to a monotonic clock

        Returns:
            PipelineOutput, or None while stopped
        """
        if not self.running:
            return None

        if timestamp_ms is None:
            timestamp_ms = time.monotonic() * 1000.0
        if self.first_update_ms is None:
            self.first_update_ms = timestamp_ms

        frame_index = self.frame_index
        self.frame_index += 1
        self.rate_monitor.update(timestamp_ms / 1000.0, detected=landmarks is not None)

        error = None
        if landmarks is not None:
            try:
                return self._process_detection(
                    landmarks, frame_width, frame_height, timestamp_ms, frame_index
                )
            except (LandmarksInsufficient, InvalidMeasurement) as e:
                self.skipped_total += 1
                error = e.code
                logger.debug(f"[Pipeline] Frame {frame_index} skipped: {e}")

        return self._process_miss(timestamp_ms, frame_index, error)

    def _process_detection(
        self,
        landmarks: Any,
        frame_width: float,
        frame_height: float,
        timestamp_ms: float,
        frame_index: int,
    ) -> PipelineOutput:
        if not isinstance(landmarks, LandmarkSet):
            landmarks = LandmarkSet.from_points(landmarks, self.config.landmarks)

        # Raises before any estimator state is touched
        raw = self.extractor.extract(landmarks, frame_width, frame_height)

        if self.state in (TrackingState.UNINITIALIZED, TrackingState.LOST):
            self._set_state(TrackingState.CALIBRATING)
            self.frames_tracked = 0

        position = self.position_filter.update(raw.position)
        quaternion = self.rotation_filter.update(euler_to_quaternion(raw.euler))
        scale = self.scale_filter.update(raw.scale)

        confidence = self.scorer.score(
            len(landmarks), raw.eye_distance_px, landmarks,
            raw_position=raw.position, filtered_position=position,
        )
        attempts = self.calibrator.stats['attempts']
        calibration = self.calibrator.maybe_calibrate(
            landmarks, frame_index, self.frames_tracked, self.asset.product_type
        )

        self.frames_tracked += 1
        self.missed_frames = 0
        self.detections_total += 1
        self.last_detection_ms = timestamp_ms

        if (
            self.state == TrackingState.CALIBRATING
            and self.frames_tracked >= self.config.confidence.stabilization_frames
        ):
            self._set_state(TrackingState.STABLE)

        pose = PoseEstimate(
            position=position,
            euler=quaternion_to_euler(quaternion),
            quaternion=quaternion,
            scale=scale,
            confidence=confidence,
            timestamp_ms=timestamp_ms,
            raw_position=raw.position,
            raw_rotation=raw.euler,
            raw_scale=raw.scale,
        )
        fit = None
        fit_quality = None
        if self.config.fitting.enabled:
            self.fitter.observe(landmarks, confidence)
            if self.calibrator.stats['attempts'] != attempts:
                self.fitter.update_profile(frame_index)
            fit = self.fitter.adjustments(pose.euler, pose.scale)
            fit_quality = self.fitter.evaluate(
                confidence, self.state == TrackingState.STABLE, pose.euler
            )

        transform = self.composer.compose(pose, calibration.final_scale, self.asset, fit)

        self.last_pose = pose
        self.last_transform = transform
        self.last_visible = transform.visible
        self.last_calibration = calibration

        return PipelineOutput(
            frame_index=frame_index,
            state=self.state,
            pose=pose,
            transform=transform,
            visible=transform.visible,
            fresh=True,
            calibration=calibration,
            timestamp_ms=timestamp_ms,
            fit_quality=fit_quality,
        )

    def _process_miss(
        self,
        timestamp_ms: float,
        frame_index: int,
        error: Optional[str],
    ) -> PipelineOutput:
        self.missed_frames += 1
        self.misses_total += 1

        if self.config.loss.reset_filters_on_miss:
            self._reset_filters()

        reference_ms = (
            self.last_detection_ms if self.last_detection_ms is not None else self.first_update_ms
        )
        elapsed_ms = timestamp_ms - reference_ms

        tracking_lost = False
        if self.state != TrackingState.LOST and (
            self.missed_frames >= self.config.loss.max_missed_frames
            or elapsed_ms >= self.config.loss.lost_timeout_ms
        ):
            self._enter_lost(elapsed_ms)
            tracking_lost = True
            error = error or TrackingLost.code

        visible = self.state != TrackingState.LOST and self.last_visible
        transform = self.last_transform
        if transform is not None:
            transform = dataclasses.replace(transform, visible=visible)

        return PipelineOutput(
            frame_index=frame_index,
            state=self.state,
            pose=self.last_pose,
            transform=transform,
            visible=visible,
            fresh=False,
            tracking_lost=tracking_lost,
            error=error,
            calibration=self.last_calibration,
            timestamp_ms=timestamp_ms,
        )

    def _enter_lost(self, elapsed_ms: float):
        self.lost_events += 1
        logger.warning(
            f"[Pipeline] Tracking lost (missed={self.missed_frames}, "
            f"elapsed={elapsed_ms:.0f}ms), resetting filters"
        )
        self._set_state(TrackingState.LOST)
        self._reset_filters()
        self.scorer.reset()
        self.frames_tracked = 0
        self.last_visible = False

    def _set_state(self, new_state: TrackingState):
        if new_state == self.state:
            return
        logger.debug(f"[Pipeline] {self.state.value} -> {new_state.value}")
        self.state = new_state

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def is_visible(self) -> bool:
        return self.state != TrackingState.LOST and self.last_visible

    def get_stats(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'running': self.running,
            'frame_index': self.frame_index,
            'frames_tracked': self.frames_tracked,
            'missed_frames': self.missed_frames,
            'detections_total': self.detections_total,
            'misses_total': self.misses_total,
            'skipped_total': self.skipped_total,
            'lost_events': self.lost_events,
            'confidence_avg': self.scorer.average(),
            'confidence_unstable': self.scorer.is_unstable(),
            'calibration': dict(self.calibrator.stats),
            'fitting': self.fitter.get_stats(),
            'rates': self.rate_monitor.get_stats(),
            'filters': {
                'position': self.position_filter.get_metrics(),
                'rotation': self.rotation_filter.get_metrics(),
                'scale': self.scale_filter.get_metrics(),
            },
        }
