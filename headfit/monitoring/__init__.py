"""
Monitoring module
=================

Update-rate and detection-rate monitoring.
"""
from .frame_rate_monitor import UpdateRateMonitor

__all__ = ['UpdateRateMonitor']
