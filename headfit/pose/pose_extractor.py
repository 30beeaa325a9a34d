"""
Geometric head pose from FaceMesh landmarks.

Position comes from the forehead centroid, rotation from the nose offset
against the eye midpoint (yaw, pitch) and the eye line angle (roll), scale
from the eye distance relative to frame width.
"""
import math
from typing import Optional

import numpy as np

from ..core.config_loader import PoseConfig
from ..core.constants import Constants
from ..core.errors import InvalidMeasurement
from ..landmarks import LandmarkGroups, LandmarkSet
from .estimate import RawPose


class PoseExtractor:
    """
    Usage:
        extractor = PoseExtractor(config.pose, config.landmarks)
        raw = extractor.extract(landmarks, 640, 480)
    """

    def __init__(
        self,
        config: Optional[PoseConfig] = None,
        groups: Optional[LandmarkGroups] = None,
    ):
        self.config = config or PoseConfig()
        self.groups = groups or LandmarkGroups()

    def extract(self, landmarks, frame_width: float, frame_height: float) -> RawPose:
        """
        Args:
            landmarks: LandmarkSet, or raw points accepted by LandmarkSet.from_points
            frame_width / frame_height: frame size in pixels

        Raises:
            LandmarksInsufficient: set shorter than the pose indices need
            InvalidMeasurement: bad frame size, NaN input or zero eye distance
        """
        if not (frame_width > 0 and frame_height > 0):
            raise InvalidMeasurement(f"invalid frame size {frame_width}x{frame_height}")

        if not isinstance(landmarks, LandmarkSet):
            landmarks = LandmarkSet.from_points(landmarks, self.groups)
        landmarks.validate(self.groups.pose_indices())

        left_eye, right_eye = landmarks.eye_centers()
        nose = landmarks.nose_tip()
        forehead = landmarks.forehead()

        eye_distance = float(np.linalg.norm(right_eye[:2] - left_eye[:2]))
        if not math.isfinite(eye_distance) or eye_distance < Constants.EPS:
            raise InvalidMeasurement(f"degenerate eye distance {eye_distance}")

        eye_center = (left_eye + right_eye) / 2.0

        yaw = (nose[0] - eye_center[0]) / eye_distance * self.config.yaw_sensitivity
        pitch = (nose[1] - eye_center[1]) / eye_distance * self.config.pitch_sensitivity
        roll = math.atan2(right_eye[1] - left_eye[1], right_eye[0] - left_eye[0])

        scale = eye_distance / frame_width * self.config.scale_constant
        if self.config.yaw_compensation:
            scale /= max(abs(math.cos(yaw)), self.config.min_yaw_cos)

        position = np.array([
            forehead[0] / frame_width,
            forehead[1] / frame_height,
            (left_eye[2] + right_eye[2]) / 2.0,
        ])
        if not np.all(np.isfinite(position)):
            raise InvalidMeasurement("non-finite position")

        return RawPose(
            position=position,
            euler=np.array([pitch, yaw, roll], dtype=float),
            scale=np.full(3, scale, dtype=float),
            eye_distance_px=eye_distance,
            left_eye=left_eye,
            right_eye=right_eye,
            landmark_count=len(landmarks),
        )
