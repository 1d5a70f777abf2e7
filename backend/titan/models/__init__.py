"""Models module."""

from .dashboard import (
    MetricSnapshot, EnergyUpdate, ResetRequest, CommandRequest, ImageAnalysisRequest, ActionResult
)

__all__ = [
    'MetricSnapshot', 'EnergyUpdate', 'ResetRequest', 'CommandRequest',
    'ImageAnalysisRequest', 'ActionResult'
]
