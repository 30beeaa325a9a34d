"""
Composite estimators built from independent scalar filters.

No cross-axis correlation is modelled: each component is filtered on its
own and the composite only guarantees that all axes move together
(update / reset / re-tune are atomic across components).
"""
from typing import Dict, Sequence

import numpy as np

from ..core.constants import Constants
from ..core.errors import InvalidMeasurement
from .kalman import ScalarKalmanFilter
from .rotation import normalize_quaternion


class _ComponentFilter:
    """N independent scalar filters updated as one unit."""

    AXES: Sequence[str] = ()

    def __init__(
        self,
        process_noise: float = 4.0,
        measurement_noise: float = 0.015,
        history_size: int = Constants.FILTER_HISTORY_SIZE,
    ):
        self.filters = [
            ScalarKalmanFilter(process_noise, measurement_noise, history_size)
            for _ in self.AXES
        ]

    def _check(self, values) -> np.ndarray:
        arr = np.asarray(values, dtype=float).reshape(-1)
        if arr.shape[0] != len(self.AXES):
            raise InvalidMeasurement(
                f"expected {len(self.AXES)} components, got {arr.shape[0]}"
            )
        # All axes checked before any filter steps
        if not np.all(np.isfinite(arr)):
            raise InvalidMeasurement(f"non-finite component in {arr.tolist()}")
        return arr

    def _update_components(self, arr: np.ndarray) -> np.ndarray:
        return np.array([f.update(v) for f, v in zip(self.filters, arr)])

    @property
    def initialized(self) -> bool:
        return self.filters[0].initialized

    @property
    def estimate(self) -> np.ndarray:
        return np.array([f.estimate for f in self.filters])

    def set_parameters(self, process_noise: float, measurement_noise: float) -> None:
        for f in self.filters:
            f.set_parameters(process_noise, measurement_noise)

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        return {axis: f.get_metrics() for axis, f in zip(self.AXES, self.filters)}

    def reset(self) -> None:
        for f in self.filters:
            f.reset()


class Vector3KalmanFilter(_ComponentFilter):
    """Position / Euler / scale smoothing."""

    AXES = ("x", "y", "z")

    def update(self, vector) -> np.ndarray:
        return self._update_components(self._check(vector))

    def filter(self, vector) -> np.ndarray:
        return self.update(vector)


class QuaternionKalmanFilter(_ComponentFilter):
    """
    Orientation smoothing on (w, x, y, z).

    q and -q encode the same rotation, so a measurement in the opposite
    hemisphere of the current estimate is negated before filtering. After
    every update the estimate is renormalized and written back into the
    component filters, so the state itself stays on the unit sphere.
    """

    AXES = ("w", "x", "y", "z")

    def update(self, quaternion) -> np.ndarray:
        q = self._check(quaternion)
        if self.initialized and float(np.dot(q, self.estimate)) < 0.0:
            q = -q
        unit = normalize_quaternion(self._update_components(q))
        for f, value in zip(self.filters, unit):
            f.estimate = float(value)
        return unit

    def filter(self, quaternion) -> np.ndarray:
        return self.update(quaternion)

    @property
    def orientation(self) -> np.ndarray:
        """Current estimate as a unit quaternion (identity before the first update)."""
        if not self.initialized:
            return normalize_quaternion((1.0, 0.0, 0.0, 0.0))
        return normalize_quaternion(self.estimate)
