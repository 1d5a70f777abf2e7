"""
Action Models - validated instructions derived from AI output.

An Action that exists is valid: every field is present, finite and correctly signed.
Construction is the only validation gate, so strict mode is on (no "500" -> 500.0, no
bools as numbers) and instances are frozen.
"""

from datetime import datetime, timezone
from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .metrics import Metric

UNKNOWN_FOOD = "Unknown food"

PositiveAmount = Annotated[float, Field(gt=0, strict=True, allow_inf_nan=False)]
NonNegativeAmount = Annotated[float, Field(ge=0, strict=True, allow_inf_nan=False)]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True, extra="forbid")


class AddWater(_Frozen):
    """Add water intake, already normalized to millilitres."""
    kind: Literal["add_water"] = "add_water"
    amount_ml: PositiveAmount


class AddSleep(_Frozen):
    """Add sleep, already normalized to hours."""
    kind: Literal["add_sleep"] = "add_sleep"
    amount_hours: PositiveAmount


class LogFood(_Frozen):
    """Add one food's calories and macros. ``name`` is informational only."""
    kind: Literal["log_food"] = "log_food"
    calories: NonNegativeAmount
    protein_g: NonNegativeAmount
    carbs_g: NonNegativeAmount
    fat_g: NonNegativeAmount
    name: str = UNKNOWN_FOOD


Action = Annotated[Union[AddWater, AddSleep, LogFood], Field(discriminator="kind")]

ACTION_TYPES = (AddWater, AddSleep, LogFood)


class NutritionEstimate(_Frozen):
    """Nutrition facts estimated from a food photo."""
    name: str = UNKNOWN_FOOD
    calories: NonNegativeAmount
    protein_g: NonNegativeAmount
    carbs_g: NonNegativeAmount
    fat_g: NonNegativeAmount

    def to_action(self) -> LogFood:
        return LogFood(
            calories=self.calories,
            protein_g=self.protein_g,
            carbs_g=self.carbs_g,
            fat_g=self.fat_g,
            name=self.name,
        )


class ChangeSet(BaseModel):
    """What applying one Action did to the store."""
    action: str
    deltas: Dict[Metric, float] = Field(default_factory=dict)
    values: Dict[Metric, float] = Field(default_factory=dict)
    food_name: Optional[str] = None
    applied_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def changed(self) -> bool:
        return bool(self.deltas)
