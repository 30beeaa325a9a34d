"""
LandmarkSet - immutable per-frame landmark container

Validated once at ingestion so downstream code can index named groups
without re-checking bounds at every call site.
"""
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np

from ..core.errors import InvalidMeasurement, LandmarksInsufficient
from .groups import LandmarkGroups


PointLike = Union[Sequence[float], dict]


class LandmarkSet:
    """
    Ordered (N, 3) landmark array: pixel x, pixel y, relative depth.

    Usage:
        landmarks = LandmarkSet.from_points(points, groups=groups)
        left = landmarks.left_eye_center()
        eye_px = landmarks.eye_distance()
    """

    __slots__ = ("_points", "groups")

    def __init__(self, points: np.ndarray, groups: Optional[LandmarkGroups] = None):
        arr = np.array(points, dtype=float, copy=True)
        if arr.ndim != 2 or arr.shape[1] not in (2, 3):
            raise InvalidMeasurement(f"landmarks must be (N, 2) or (N, 3), got {arr.shape}")
        if arr.shape[1] == 2:
            arr = np.column_stack([arr, np.zeros(len(arr))])
        arr.setflags(write=False)
        self._points = arr
        self.groups = groups or LandmarkGroups()

    @classmethod
    def from_points(
        cls,
        points: Iterable[PointLike],
        groups: Optional[LandmarkGroups] = None,
        required: Optional[int] = None,
    ) -> "LandmarkSet":
        """
        Build and validate a set from detector output.

        Args:
            points: sequence of (x, y[, z]) tuples or {'x', 'y', 'z'} dicts
            groups: landmark index map
            required: minimum length (defaults to groups.required_count)

        Raises:
            LandmarksInsufficient: fewer points than required
            InvalidMeasurement: malformed points or NaN in a required index
        """
        groups = groups or LandmarkGroups()
        try:
            items = list(points)
        except TypeError as e:
            raise InvalidMeasurement(f"landmarks are not a point sequence: {type(points).__name__}") from e

        rows = []
        for i, p in enumerate(items):
            if isinstance(p, dict):
                rows.append((p.get("x", np.nan), p.get("y", np.nan), p.get("z", 0.0) or 0.0))
                continue
            try:
                n = len(p)
            except TypeError as e:
                raise InvalidMeasurement(f"landmark {i} is not a point: {p!r}") from e
            if n not in (2, 3):
                raise InvalidMeasurement(f"landmark {i} has {n} components, expected 2 or 3")
            rows.append(tuple(p) if n == 3 else (p[0], p[1], 0.0))

        required = groups.required_count if required is None else int(required)
        if len(rows) < required:
            raise LandmarksInsufficient(len(rows), required)

        try:
            arr = np.asarray(rows, dtype=float).reshape(-1, 3)
        except (TypeError, ValueError) as e:
            raise InvalidMeasurement(f"non-numeric landmark coordinates: {e}") from e
        landmark_set = cls(arr, groups)
        landmark_set.validate(groups.pose_indices())
        return landmark_set

    def validate(self, indices: Iterable[int]) -> None:
        """Check that every listed index exists and holds finite x/y."""
        idx = np.asarray(list(indices), dtype=int)
        if idx.size == 0:
            return
        if int(idx.max()) >= len(self._points):
            raise LandmarksInsufficient(len(self._points), int(idx.max()) + 1)
        if not np.all(np.isfinite(self._points[idx, :2])):
            raise InvalidMeasurement("non-finite coordinates in required landmarks")

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------
    @property
    def points(self) -> np.ndarray:
        """Read-only (N, 3) view."""
        return self._points

    def __len__(self) -> int:
        return len(self._points)

    def __getitem__(self, index: int) -> np.ndarray:
        return self._points[index]

    @property
    def is_complete(self) -> bool:
        return len(self._points) >= self.groups.full_count

    def has_indices(self, indices: Iterable[int]) -> bool:
        return all(0 <= i < len(self._points) for i in indices)

    def mean_of(self, indices: Sequence[int]) -> np.ndarray:
        return self._points[list(indices)].mean(axis=0)

    # ------------------------------------------------------------------
    # Named groups
    # ------------------------------------------------------------------
    def left_eye_center(self) -> np.ndarray:
        return self.mean_of(self.groups.left_eye)

    def right_eye_center(self) -> np.ndarray:
        return self.mean_of(self.groups.right_eye)

    def eye_centers(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.left_eye_center(), self.right_eye_center()

    def nose_tip(self) -> np.ndarray:
        return self._points[self.groups.nose_tip]

    def forehead(self) -> np.ndarray:
        return self.mean_of(self.groups.forehead)

    def crown(self) -> np.ndarray:
        return self._points[self.groups.crown]

    def chin(self) -> np.ndarray:
        return self._points[self.groups.chin]

    def temples(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._points[self.groups.left_temple], self._points[self.groups.right_temple]

    def jaw_corners(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._points[self.groups.left_jaw], self._points[self.groups.right_jaw]

    def forehead_sides(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._points[self.groups.left_forehead], self._points[self.groups.right_forehead]

    def eye_distance(self) -> float:
        """2D pixel distance between eye centers."""
        left, right = self.eye_centers()
        return float(np.linalg.norm(right[:2] - left[:2]))

    def __repr__(self) -> str:
        return f"LandmarkSet(n={len(self._points)}, complete={self.is_complete})"
