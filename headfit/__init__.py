"""
HeadFit - real-time head pose estimation for 3D accessory overlays
"""
from .core.config_loader import TrackingConfig, get_config, load_config
from .render import AssetProfile
from .tracking import HeadTrackingPipeline, PipelineOutput, TrackingState

__version__ = "0.3.0"

__all__ = [
    'TrackingConfig',
    'get_config',
    'load_config',
    'AssetProfile',
    'HeadTrackingPipeline',
    'PipelineOutput',
    'TrackingState',
]
