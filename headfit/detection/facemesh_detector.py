"""
MediaPipe FaceMesh detector adapter
Turns a BGR camera frame into a pixel-space LandmarkSet
"""
from typing import Optional

import cv2
import numpy as np

from ..core.logger import logger
from ..landmarks import LandmarkGroups, LandmarkSet

try:
    import mediapipe as mp
    MEDIAPIPE_AVAILABLE = True
except ImportError:
    logger.warning("MediaPipe not available for face landmark detection")
    MEDIAPIPE_AVAILABLE = False


class FaceMeshDetector:
    """
    Detector contract: callable frame -> LandmarkSet | None

    x / y are scaled to pixels, z (relative depth) is scaled by the frame
    width as FaceMesh does for x.
    """

    def __init__(
        self,
        groups: Optional[LandmarkGroups] = None,
        refine_landmarks: bool = False,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.7,
    ):
        self.groups = groups or LandmarkGroups()
        self.enabled = MEDIAPIPE_AVAILABLE
        self.face_mesh = None

        if not self.enabled:
            logger.warning("MediaPipe不可用，人脸关键点检测将被禁用")
            return

        self.face_mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=1,
            refine_landmarks=refine_landmarks,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        logger.info(
            f"FaceMeshDetector initialized (refine={refine_landmarks}, "
            f"det={min_detection_confidence}, track={min_tracking_confidence})"
        )

    def detect(self, frame: np.ndarray) -> Optional[LandmarkSet]:
        """
        Args:
            frame: BGR image (H, W, 3)

        Returns:
            LandmarkSet for the first face, or None
        """
        if not self.enabled or frame is None:
            return None

        h, w = frame.shape[:2]
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self.face_mesh.process(rgb)
        if not results.multi_face_landmarks:
            return None

        points = np.array(
            [(lm.x * w, lm.y * h, lm.z * w) for lm in results.multi_face_landmarks[0].landmark],
            dtype=float,
        )
        return LandmarkSet(points, self.groups)

    def __call__(self, frame: np.ndarray) -> Optional[LandmarkSet]:
        return self.detect(frame)

    def close(self):
        if self.face_mesh is not None:
            self.face_mesh.close()
            self.face_mesh = None
        self.enabled = False
