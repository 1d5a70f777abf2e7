"""
Metric definitions - the seven daily quantities tracked on the dashboard.
"""

from enum import Enum
from typing import Dict


class Metric(str, Enum):
    """Tracked daily metric. The value doubles as the storage key."""
    WATER = "water_ml"
    SLEEP = "sleep_hours"
    ENERGY = "energy_level"
    CALORIES = "calories_kcal"
    PROTEIN = "protein_g"
    CARBS = "carbs_g"
    FAT = "fat_g"

    @property
    def default(self) -> float:
        return DEFAULTS[self]

    @property
    def is_absolute(self) -> bool:
        """Absolute metrics are overwritten, never accumulated."""
        return self is Metric.ENERGY


DEFAULTS: Dict[Metric, float] = {
    Metric.WATER: 0,
    Metric.SLEEP: 0,
    Metric.ENERGY: 5,
    Metric.CALORIES: 0,
    Metric.PROTEIN: 0,
    Metric.CARBS: 0,
    Metric.FAT: 0,
}

# Manual +/- button increments
STEP_SIZES: Dict[Metric, float] = {
    Metric.WATER: 250,
    Metric.SLEEP: 0.5,
}

NUTRITION_METRICS = (Metric.CALORIES, Metric.PROTEIN, Metric.CARBS, Metric.FAT)

ENERGY_MIN = 0
ENERGY_MAX = 10
