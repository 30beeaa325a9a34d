"""
Render module

Handedness conversion and render transform composition.
"""
from .handedness import Handedness
from .transform_composer import AssetProfile, RenderTransform, TransformComposer

__all__ = [
    'Handedness',
    'AssetProfile',
    'RenderTransform',
    'TransformComposer',
]
