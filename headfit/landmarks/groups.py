"""
Named landmark index groups for the 468-point FaceMesh topology.

    33 / 263:  outer eye corners (left / right)
    1:         nose tip
    10:        top of forehead (crown proxy)
    152:       chin
    234 / 454: temples (left / right)
    172 / 397: jaw corners (left / right)
    67 / 297:  forehead sides (left / right)
"""
from dataclasses import dataclass, field
from typing import Tuple

from ..core.constants import Constants


@dataclass
class LandmarkGroups:
    """Index subsets used by the extractor, scorer, calibrator and fitter."""
    left_eye: Tuple[int, ...] = (33, 133, 160, 159, 158, 144, 145, 153)
    right_eye: Tuple[int, ...] = (362, 263, 387, 386, 385, 373, 374, 380)
    nose_tip: int = 1
    forehead: Tuple[int, ...] = (10, 67, 109, 338, 297)
    crown: int = 10
    chin: int = 152
    left_temple: int = 234
    right_temple: int = 454
    left_jaw: int = 172
    right_jaw: int = 397
    left_forehead: int = 67
    right_forehead: int = 297

    # Stable points sampled for frame-to-frame jitter
    jitter_sample: Tuple[int, ...] = (1, 33, 263, 61, 291, 152, 234, 454)

    full_count: int = field(default=Constants.FULL_LANDMARK_COUNT)

    def __post_init__(self):
        self.left_eye = tuple(int(i) for i in self.left_eye)
        self.right_eye = tuple(int(i) for i in self.right_eye)
        self.forehead = tuple(int(i) for i in self.forehead)
        self.jitter_sample = tuple(int(i) for i in self.jitter_sample)
        if not self.left_eye or not self.right_eye or not self.forehead:
            raise ValueError("eye and forehead groups must not be empty")
        if min(self.all_indices()) < 0:
            raise ValueError("landmark indices must be non-negative")

    def pose_indices(self) -> Tuple[int, ...]:
        """Indices the pose extractor reads."""
        return self.left_eye + self.right_eye + self.forehead + (self.nose_tip,)

    def calibration_indices(self) -> Tuple[int, ...]:
        """Indices the scale calibrator reads."""
        return self.left_eye + self.right_eye + (
            self.crown, self.chin, self.left_temple, self.right_temple,
        )

    def fitting_indices(self) -> Tuple[int, ...]:
        """Indices the face-shape fitter reads."""
        return (
            self.crown, self.chin, self.left_temple, self.right_temple,
            self.left_jaw, self.right_jaw, self.left_forehead, self.right_forehead,
        )

    def all_indices(self) -> Tuple[int, ...]:
        return (
            self.pose_indices() + self.calibration_indices()
            + self.fitting_indices() + self.jitter_sample
        )

    @property
    def required_count(self) -> int:
        """Shortest set on which every pose index is addressable."""
        return max(self.pose_indices()) + 1
