"""
Calibration module
"""
from .fitting import FaceProfile, FitAdjustments, FitQuality, SmartFitter
from .scale_calibrator import ScaleCalibration, ScaleCalibrator

__all__ = [
    'ScaleCalibrator',
    'ScaleCalibration',
    'SmartFitter',
    'FaceProfile',
    'FitAdjustments',
    'FitQuality',
]
