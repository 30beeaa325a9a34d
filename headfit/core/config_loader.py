"""
Tracking configuration - dataclass config loaded from JSON
===========================================================

This module:
1. declares every numeric/boolean knob of the estimation stack as a dataclass
2. reads config/tracking_config.json and merges it over the defaults
3. validates ranges once, at load time

Config file location:
- argument: load_config(config_path="path/to/config.json")
- environment: HEADFIT_CONFIG=path/to/config.json
- default: ./tracking_config.json, then config/tracking_config.json

Usage:
```python
from headfit.core.config_loader import get_config

config = get_config()  # singleton
print(config.kalman.position.process_noise)
print(config.confidence.threshold)
```
"""
from __future__ import annotations


import os
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from ..landmarks.groups import LandmarkGroups
from .config_file import find_config_path, read_config_file
from .constants import Constants


# ============================================================================
# Config sections
# ============================================================================

@dataclass
class FilterNoiseConfig:
    """Process / measurement noise pair for one estimator"""
    process_noise: float = 4.0       # Q - responsiveness to motion
    measurement_noise: float = 0.015  # R - trust in each sample


@dataclass
class KalmanConfig:
    """Noise pairs for position, rotation and scale"""
    position: FilterNoiseConfig = field(default_factory=lambda: FilterNoiseConfig(4.0, 0.015))
    rotation: FilterNoiseConfig = field(default_factory=lambda: FilterNoiseConfig(3.5, 0.02))
    scale: FilterNoiseConfig = field(default_factory=lambda: FilterNoiseConfig(2.0, 0.025))
    history_size: int = Constants.FILTER_HISTORY_SIZE


@dataclass
class PoseConfig:
    """Raw pose extraction gains"""
    yaw_sensitivity: float = 0.5
    pitch_sensitivity: float = 0.3
    scale_constant: float = 5.0
    yaw_compensation: bool = False
    min_yaw_cos: float = 0.5  # cap on the yaw compensation


@dataclass
class ConfidenceConfig:
    """Confidence scoring and visibility gate"""
    threshold: float = 0.5
    stabilization_frames: int = 5
    history_size: int = 30

    # Comfortable eye distance range (pixels)
    min_eye_distance_px: float = 40.0
    max_eye_distance_px: float = 300.0

    # Jitter, relative to eye distance
    jitter_tolerance: float = 0.02
    jitter_gain: float = 5.0
    min_jitter_factor: float = 0.5

    # Raw vs filtered position residual (normalized frame units)
    residual_tolerance: float = 0.05
    residual_gain: float = 4.0
    min_residual_factor: float = 0.6

    # Blend against the rolling average
    blend_base: float = 0.2
    blend_max: float = 0.8

    instability_std: float = 0.15


@dataclass
class CalibrationConfig:
    """Anthropometric scale calibration"""
    enabled: bool = True
    interval_frames: int = 30

    base_scale: float = 0.0018
    eye_distance_reference: float = 100.0
    adaptive_factor: float = 1.0

    # Global bounds on the final render scale
    min_scale: float = 0.0005
    max_scale: float = 0.01

    # Safety band on the anthropometric factor
    factor_min: float = 0.5
    factor_max: float = 2.0

    average_ipd_mm: float = Constants.AVERAGE_IPD_MM
    focal_length_px: float = Constants.FOCAL_LENGTH_PX
    reference_head_width_mm: float = Constants.REFERENCE_HEAD_WIDTH_MM
    reference_head_height_mm: float = Constants.REFERENCE_HEAD_HEIGHT_MM
    reference_head_depth_mm: float = Constants.REFERENCE_HEAD_DEPTH_MM

    product_multipliers: Dict[str, float] = field(
        default_factory=lambda: dict(Constants.PRODUCT_MULTIPLIERS)
    )


@dataclass
class FittingConfig:
    """Face-shape fitting and fit quality"""
    enabled: bool = False
    min_confidence: float = 0.7  # frames below this are not sampled
    sample_window: int = 60
    min_samples: int = 10

    # Pose-driven adjustments (degrees)
    yaw_threshold_deg: float = 30.0
    yaw_range_deg: float = 60.0
    pitch_threshold_deg: float = 20.0
    pitch_range_deg: float = 40.0
    max_x_narrowing: float = 0.1
    max_fade: float = 0.2
    max_pitch_lift: float = 0.05
    depth_gain: float = 0.1

    good_fit_score: float = 70.0


@dataclass
class TransformConfig:
    """Detector space -> render space mapping"""
    position_multiplier: float = 8.0
    depth_offset: float = -3.2
    depth_sensitivity: float = 0.0
    mirror_x: bool = True  # selfie display


@dataclass
class LossConfig:
    """Lost-tracking policy"""
    lost_timeout_ms: float = 1000.0
    max_missed_frames: int = 30
    reset_filters_on_miss: bool = False


@dataclass
class LoggingConfig:
    level: str = "INFO"
    enable_console: bool = True
    enable_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "daily"
    max_size_mb: int = 20


@dataclass
class TrackingConfig:
    """
    Top-level configuration

    Attributes:
        kalman: filter noise pairs
        pose: raw pose extraction gains
        confidence: confidence scoring
        calibration: scale calibration
        fitting: face-shape fitting
        transform: render-space mapping
        loss: lost-tracking policy
        landmarks: landmark index groups
        logging: logger settings
    """
    kalman: KalmanConfig = field(default_factory=KalmanConfig)
    pose: PoseConfig = field(default_factory=PoseConfig)
    confidence: ConfidenceConfig = field(default_factory=ConfidenceConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    fitting: FittingConfig = field(default_factory=FittingConfig)
    transform: TransformConfig = field(default_factory=TransformConfig)
    loss: LossConfig = field(default_factory=LossConfig)
    landmarks: LandmarkGroups = field(default_factory=LandmarkGroups)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    _config_path: Optional[Path] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackingConfig":
        config = cls()
        _merge_into(config, data, prefix="")
        # Re-run tuple coercion / index checks on merged landmark groups
        config.landmarks.__post_init__()
        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("_config_path", None)
        return data

    def validate(self) -> None:
        """Range checks; raises ValueError on the first violation."""
        for name in ("position", "rotation", "scale"):
            noise = getattr(self.kalman, name)
            if noise.process_noise < 0:
                raise ValueError(f"kalman.{name}.process_noise must be >= 0")
            if noise.measurement_noise <= 0:
                raise ValueError(f"kalman.{name}.measurement_noise must be > 0")
        if self.kalman.history_size < 1:
            raise ValueError("kalman.history_size must be >= 1")

        c = self.confidence
        if not 0.0 <= c.threshold <= 1.0:
            raise ValueError("confidence.threshold must be in [0, 1]")
        if c.stabilization_frames < 0:
            raise ValueError("confidence.stabilization_frames must be >= 0")
        if c.history_size < 1:
            raise ValueError("confidence.history_size must be >= 1")
        if not 0 < c.min_eye_distance_px < c.max_eye_distance_px:
            raise ValueError("confidence eye distance range must satisfy 0 < min < max")
        if c.residual_tolerance < 0 or not 0.0 <= c.min_residual_factor <= 1.0:
            raise ValueError("confidence residual settings out of range")

        cal = self.calibration
        if cal.interval_frames < 1:
            raise ValueError("calibration.interval_frames must be >= 1")
        if not 0 < cal.min_scale < cal.max_scale:
            raise ValueError("calibration scale bounds must satisfy 0 < min < max")
        if not 0 < cal.factor_min < cal.factor_max:
            raise ValueError("calibration factor bounds must satisfy 0 < min < max")
        if cal.eye_distance_reference <= 0:
            raise ValueError("calibration.eye_distance_reference must be > 0")

        fit = self.fitting
        if fit.sample_window < 1 or fit.min_samples < 1:
            raise ValueError("fitting.sample_window and fitting.min_samples must be >= 1")
        if fit.yaw_range_deg <= 0 or fit.pitch_range_deg <= 0:
            raise ValueError("fitting yaw / pitch ranges must be > 0")

        if self.loss.lost_timeout_ms <= 0:
            raise ValueError("loss.lost_timeout_ms must be > 0")
        if self.loss.max_missed_frames < 1:
            raise ValueError("loss.max_missed_frames must be >= 1")

    def set_config_path(self, path: Path) -> None:
        self._config_path = path

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path


def _merge_into(target: Any, data: Dict[str, Any], prefix: str) -> None:
    """Recursively overwrite dataclass fields from a nested dict."""
    if not isinstance(data, dict):
        raise ValueError(f"Config section '{prefix or 'root'}' must be an object")
    for key, value in data.items():
        if key.startswith("_") or key not in {f.name for f in fields(target)}:
            raise ValueError(f"Unknown config key: {prefix}{key}")
        current = getattr(target, key)
        if is_dataclass(current) and isinstance(value, dict):
            _merge_into(current, value, prefix=f"{prefix}{key}.")
        elif isinstance(current, dict) and isinstance(value, dict):
            merged = dict(current)
            merged.update(value)
            setattr(target, key, merged)
        elif isinstance(current, tuple) and isinstance(value, list):
            setattr(target, key, tuple(value))
        else:
            setattr(target, key, value)


# ============================================================================
# Loader (singleton)
# ============================================================================

_config_instance: Optional[TrackingConfig] = None

def load_config(config_path: Optional[str | Path] = None) -> TrackingConfig:
    """
    Load configuration from JSON, falling back to defaults when no file exists.

    Args:
        config_path: explicit path; an explicit path that does not exist
                     raises FileNotFoundError

    Returns:
        TrackingConfig

    Raises:
        FileNotFoundError: explicit config file does not exist
        ValueError: malformed JSON, unknown key or out-of-range value
    """
    if config_path is None:
        found = find_config_path()
        if found is None:
            return TrackingConfig()
        config_path = found

    config_path = Path(config_path)
    config = TrackingConfig.from_dict(read_config_file(config_path))
    config.set_config_path(config_path)
    return config


def get_config(config_path: Optional[str | Path] = None, reload: bool = False) -> TrackingConfig:
    """
    Lazily loaded config singleton.

    Args:
        config_path: only honoured on first load or reload
        reload: force a re-read
    """
    global _config_instance

    if _config_instance is None or reload:
        _config_instance = apply_env_overrides(load_config(config_path))

    return _config_instance


def apply_env_overrides(config: TrackingConfig) -> TrackingConfig:
    """
    Environment overrides (ENV > tracking_config.json > defaults)

    Supported variables:
    - HEADFIT_LOG_LEVEL: log level
    - HEADFIT_CONFIDENCE_THRESHOLD: visibility threshold
    - HEADFIT_LOST_TIMEOUT_MS: lost-tracking timeout
    """
    if log_level := os.getenv("HEADFIT_LOG_LEVEL"):
        config.logging.level = log_level.upper()

    if threshold := os.getenv("HEADFIT_CONFIDENCE_THRESHOLD"):
        try:
            config.confidence.threshold = min(1.0, max(0.0, float(threshold)))
        except ValueError:
            pass

    if timeout := os.getenv("HEADFIT_LOST_TIMEOUT_MS"):
        try:
            value = float(timeout)
            if value > 0:
                config.loss.lost_timeout_ms = value
        except ValueError:
            pass

    return config
