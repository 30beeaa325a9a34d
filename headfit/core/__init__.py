"""
Core module for common utilities and constants
"""
from .constants import Constants
from .errors import (
    CalibrationOutOfBounds,
    InvalidMeasurement,
    LandmarksInsufficient,
    TrackingError,
    TrackingLost,
)
from .logger import setup_logger, logger

__all__ = [
    'Constants',
    'setup_logger',
    'logger',
    'TrackingError',
    'LandmarksInsufficient',
    'InvalidMeasurement',
    'CalibrationOutOfBounds',
    'TrackingLost',
]
