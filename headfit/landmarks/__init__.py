"""
Landmark containers

Typed access to the FaceMesh landmark groups used by pose extraction,
confidence scoring and scale calibration.
"""
from .groups import LandmarkGroups
from .landmark_set import LandmarkSet

__all__ = [
    "LandmarkGroups",
    "LandmarkSet",
]
