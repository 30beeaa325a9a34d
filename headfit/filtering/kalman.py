"""
Scalar Kalman filter with a constant-state model.

Predict:
    P(k|k-1) = P(k-1|k-1) + Q
Correct:
    K = P / (P + R)
    x = x + K * (z - x)
    P = (1 - K) * P

Every instance owns a fixed-capacity history ring buffer; nothing is shared
between filters.
"""
import math
from collections import deque
from typing import Deque, Dict, List, NamedTuple

import numpy as np

from ..core.constants import Constants
from ..core.errors import InvalidMeasurement


class FilterSample(NamedTuple):
    measurement: float
    estimate: float
    innovation: float


class ScalarKalmanFilter:
    """
    One-dimensional recursive estimator.

    The first update seeds the estimate with the measurement and returns it
    unfiltered; every later update runs one predict/correct step.
    """

    def __init__(
        self,
        process_noise: float = 4.0,
        measurement_noise: float = 0.015,
        history_size: int = Constants.FILTER_HISTORY_SIZE,
    ):
        self.Q = 0.0
        self.R = Constants.MIN_MEASUREMENT_NOISE
        self.set_parameters(process_noise, measurement_noise)

        self.estimate = 0.0
        self.P = Constants.INITIAL_COVARIANCE
        self.K = 0.0
        self.initialized = False

        self._history: Deque[FilterSample] = deque(maxlen=max(1, int(history_size)))

    def update(self, measurement: float) -> float:
        """
        Fold one measurement into the estimate.

        Raises:
            InvalidMeasurement: measurement is NaN or infinite (state untouched)
        """
        try:
            z = float(measurement)
        except (TypeError, ValueError) as e:
            raise InvalidMeasurement(f"measurement is not a number: {measurement!r}") from e
        if not math.isfinite(z):
            raise InvalidMeasurement(f"non-finite measurement: {z}")

        if not self.initialized:
            self.estimate = z
            self.initialized = True
            self._history.append(FilterSample(z, z, 0.0))
            return self.estimate

        # Predict (state unchanged, uncertainty grows)
        self.P += self.Q

        # Correct
        self.K = self.P / (self.P + self.R)
        innovation = z - self.estimate
        self.estimate += self.K * innovation
        self.P = max(0.0, (1.0 - self.K) * self.P)

        self._history.append(FilterSample(z, self.estimate, innovation))
        return self.estimate

    def filter(self, value: float) -> float:
        return self.update(value)

    def set_parameters(self, process_noise: float, measurement_noise: float) -> None:
        """Re-tune Q and R at runtime."""
        self.Q = max(0.0, float(process_noise))
        self.R = max(Constants.MIN_MEASUREMENT_NOISE, float(measurement_noise))

    def innovation_std(self) -> float:
        """Population std of buffered innovations (0 with fewer than 2)."""
        if len(self._history) < 2:
            return 0.0
        return float(np.std([s.innovation for s in self._history]))

    def get_metrics(self) -> Dict[str, float]:
        return {
            "gain": self.K,
            "covariance": self.P,
            "qr_ratio": self.Q / self.R,
            "innovation_std": self.innovation_std(),
        }

    @property
    def history(self) -> List[FilterSample]:
        """Snapshot of the ring buffer, oldest first."""
        return list(self._history)

    @property
    def history_size(self) -> int:
        return self._history.maxlen

    def reset(self) -> None:
        self.estimate = 0.0
        self.P = Constants.INITIAL_COVARIANCE
        self.K = 0.0
        self.initialized = False
        self._history.clear()

    def __repr__(self) -> str:
        return (
            f"ScalarKalmanFilter(x={self.estimate:.4f}, P={self.P:.4g}, "
            f"Q={self.Q}, R={self.R}, init={self.initialized})"
        )
