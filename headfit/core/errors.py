"""
Recoverable tracking errors.

None of these is fatal: the pipeline catches them per frame, logs them and
degrades (skip the frame, keep the cached value, or change state).
"""
from typing import Optional


class TrackingError(Exception):
    """Base class for all per-frame tracking failures."""

    code = "tracking_error"

    def __init__(self, message: str = "", detail: Optional[dict] = None):
        super().__init__(message or self.code)
        self.detail = detail or {}


class LandmarksInsufficient(TrackingError):
    """Landmark set shorter than the indices the extractor needs."""

    code = "landmarks_insufficient"

    def __init__(self, count: int, required: int):
        super().__init__(
            f"got {count} landmarks, need at least {required}",
            {"count": count, "required": required},
        )
        self.count = count
        self.required = required


class InvalidMeasurement(TrackingError):
    """NaN input or degenerate geometry (e.g. zero eye distance)."""

    code = "invalid_measurement"


class CalibrationOutOfBounds(TrackingError):
    """Scale factor outside the configured safety band."""

    code = "calibration_out_of_bounds"

    def __init__(self, factor: float, bounds):
        super().__init__(
            f"scale factor {factor:.4f} outside [{bounds[0]}, {bounds[1]}]",
            {"factor": factor, "bounds": tuple(bounds)},
        )
        self.factor = factor
        self.bounds = tuple(bounds)


class TrackingLost(TrackingError):
    """No usable detection for longer than the loss timeout."""

    code = "tracking_lost"
