"""
Detector space -> render space handedness.

Detector (image) space: x right, y down, z into the scene.
Render space:           x right, y up,   z toward the viewer.
A mirrored (selfie) display additionally reflects x.

All sign flips between the two live here. The axis map is the diagonal
matrix S = diag(sx, sy, sz):
    positions transform as   S @ p
    rotations transform as   S @ R @ S   (conjugation by a reflection)
For an Euler triple (pitch, yaw, roll) under S @ R @ S each angle about
axis i picks up sign det(S) * s_i. When det(S) = -1 the mapping is
improper; that part is carried by the model's x scale so the rendered
rotation stays proper.
"""
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Handedness:
    mirror_x: bool = True

    @property
    def axis_signs(self) -> np.ndarray:
        return np.array([-1.0 if self.mirror_x else 1.0, -1.0, -1.0])

    @property
    def determinant(self) -> float:
        return float(np.prod(self.axis_signs))

    @property
    def position_signs(self) -> np.ndarray:
        return self.axis_signs

    @property
    def rotation_signs(self) -> np.ndarray:
        return self.determinant * self.axis_signs

    @property
    def scale_signs(self) -> np.ndarray:
        return np.array([self.determinant, 1.0, 1.0])

    def position(self, p) -> np.ndarray:
        return self.position_signs * np.asarray(p, dtype=float)

    def rotation(self, euler) -> np.ndarray:
        return self.rotation_signs * np.asarray(euler, dtype=float)

    def scale(self, s) -> np.ndarray:
        return self.scale_signs * np.asarray(s, dtype=float)

    def rotation_matrix(self, R) -> np.ndarray:
        S = np.diag(self.axis_signs)
        return S @ np.asarray(R, dtype=float) @ S
