"""
Action Applier - applies a validated Action to the Metric Store.
"""

import logging
from typing import Dict

from .actions import ACTION_TYPES, AddSleep, AddWater, ChangeSet, LogFood
from .errors import ActionContractViolation
from .metric_store import MetricStore
from .metrics import Metric

logger = logging.getLogger(__name__)


def _deltas_for(action) -> Dict[Metric, float]:
    if isinstance(action, AddWater):
        return {Metric.WATER: action.amount_ml}
    if isinstance(action, AddSleep):
        return {Metric.SLEEP: action.amount_hours}
    if isinstance(action, LogFood):
        return {
            Metric.CALORIES: action.calories,
            Metric.PROTEIN: action.protein_g,
            Metric.CARBS: action.carbs_g,
            Metric.FAT: action.fat_g,
        }
    raise ActionContractViolation(f"Not an Action: {action!r}")


async def apply(action, store: MetricStore) -> ChangeSet:
    """
    Apply ``action`` to ``store``.

    LogFood increments the four nutrition metrics as one batch; its name is reported in
    the ChangeSet and never stored.

    Returns:
        ChangeSet listing each metric whose value changed, with the applied delta

    Raises:
        ActionContractViolation: ``action`` is not a valid Action. Fatal; never caught here.
        MetricValueError: the new total would not be a finite number; nothing is written
    """
    if not isinstance(action, ACTION_TYPES):
        raise ActionContractViolation(f"Not an Action: {action!r}")

    deltas = _deltas_for(action)
    changes = await store.increment_many(deltas)

    change_set = ChangeSet(
        action=action.kind,
        deltas={metric: deltas[metric] for metric, (old, new) in changes.items() if new != old},
        values={metric: new for metric, (old, new) in changes.items()},
        food_name=action.name if isinstance(action, LogFood) else None,
    )

    logger.info(
        f"Applied {action.kind}: "
        + ", ".join(f"{m.value} +{d:g}" for m, d in change_set.deltas.items())
        + (f" ({change_set.food_name})" if change_set.food_name else ""),
        extra={"extra_fields": {
            "action": action.kind,
            "deltas": {m.value: d for m, d in change_set.deltas.items()},
            "food_name": change_set.food_name,
        }}
    )
    return change_set
