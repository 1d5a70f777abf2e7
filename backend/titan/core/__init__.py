"""Core module - the health metric engine."""

from .metrics import Metric
from .metric_store import MetricStore
from .actions import Action, AddWater, AddSleep, LogFood, NutritionEstimate, ChangeSet
from .interpreter import interpret_command, interpret_image_analysis
from .applier import apply
from .pipeline import ActionPipeline, RequestOutcome, RequestSource, RequestState, OutcomeStatus

__all__ = [
    'Metric', 'MetricStore',
    'Action', 'AddWater', 'AddSleep', 'LogFood', 'NutritionEstimate', 'ChangeSet',
    'interpret_command', 'interpret_image_analysis', 'apply',
    'ActionPipeline', 'RequestOutcome', 'RequestSource', 'RequestState', 'OutcomeStatus',
]
