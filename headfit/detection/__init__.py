"""
Detection module
"""
from .facemesh_detector import FaceMeshDetector, MEDIAPIPE_AVAILABLE

__all__ = ['FaceMeshDetector', 'MEDIAPIPE_AVAILABLE']
