"""
Pose module

Raw pose extraction from landmarks and confidence scoring.
"""
from .confidence import ConfidenceScorer
from .estimate import PoseEstimate, RawPose
from .pose_extractor import PoseExtractor

__all__ = [
    'PoseExtractor',
    'RawPose',
    'PoseEstimate',
    'ConfidenceScorer',
]
