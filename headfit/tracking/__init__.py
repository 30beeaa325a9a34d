"""
Tracking module

Per-subject head tracking pipeline and its state machine.
"""
from .pipeline import HeadTrackingPipeline, PipelineOutput, TrackingState

__all__ = [
    'HeadTrackingPipeline',
    'PipelineOutput',
    'TrackingState',
]
