# tests/conftest.py
"""Shared fixtures: synthetic FaceMesh landmark sets, no camera or detector needed."""
from __future__ import annotations

import numpy as np
import pytest

from headfit.core.config_loader import TrackingConfig
from headfit.landmarks import LandmarkGroups

FRAME_W = 1280
FRAME_H = 720

# Reference proportions: at 100 px eye distance these give an anthropometric
# factor of ~1.0 (63 mm IPD, 145 x 230 mm head)
HEAD_WIDTH_PER_EYE = 2.30
HEAD_HEIGHT_PER_EYE = 3.65


def synthetic_face(
    center=(640.0, 360.0),
    eye_distance: float = 100.0,
    head_width: float | None = None,
    head_height: float | None = None,
    nose_offset=(0.0, 50.0),
    count: int = 468,
    depth: float = -0.05,
    groups: LandmarkGroups | None = None,
) -> np.ndarray:
    """(count, 3) array with the named groups placed on a frontal face."""
    groups = groups or LandmarkGroups()
    k = eye_distance / 100.0
    head_width = HEAD_WIDTH_PER_EYE * eye_distance if head_width is None else head_width
    head_height = HEAD_HEIGHT_PER_EYE * eye_distance if head_height is None else head_height

    cx, cy = center
    eye_y = cy - 40.0 * k
    crown_y = cy - 180.0 * k

    pts = np.zeros((max(count, groups.full_count), 3))
    pts[:, 0] = cx
    pts[:, 1] = cy
    pts[:, 2] = depth

    pts[list(groups.left_eye), :2] = (cx - eye_distance / 2.0, eye_y)
    pts[list(groups.right_eye), :2] = (cx + eye_distance / 2.0, eye_y)
    pts[groups.nose_tip, :2] = (cx + nose_offset[0] * k, eye_y + nose_offset[1] * k)
    pts[list(groups.forehead), :2] = (cx, crown_y)
    pts[groups.crown, :2] = (cx, crown_y)
    pts[groups.chin, :2] = (cx, crown_y + head_height)
    pts[groups.left_temple, :2] = (cx - head_width / 2.0, eye_y + 10.0 * k)
    pts[groups.right_temple, :2] = (cx + head_width / 2.0, eye_y + 10.0 * k)
    return pts[:count].copy()


@pytest.fixture
def face():
    """Factory fixture around synthetic_face."""
    return synthetic_face


@pytest.fixture
def frame_size():
    return FRAME_W, FRAME_H


@pytest.fixture
def config():
    return TrackingConfig()
