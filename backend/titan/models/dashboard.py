"""
Dashboard Models - request/response bodies for the metrics and actions API.
"""

from datetime import date
from typing import Dict, Optional

from pydantic import BaseModel, Field

from ..core.actions import ChangeSet, NutritionEstimate
from ..core.errors import ErrorKind
from ..core.metrics import ENERGY_MAX, ENERGY_MIN, Metric
from ..core.pipeline import OutcomeStatus, RequestOutcome, RequestSource


class MetricSnapshot(BaseModel):
    """All seven metrics as shown on the dashboard."""
    day: date = Field(default_factory=date.today)
    water_ml: float
    sleep_hours: float
    energy_level: float
    calories_kcal: float
    protein_g: float
    carbs_g: float
    fat_g: float

    @classmethod
    def from_values(cls, values: Dict[Metric, float]) -> "MetricSnapshot":
        return cls(**{metric.value: value for metric, value in values.items()})


class EnergyUpdate(BaseModel):
    """Absolute energy level from the slider. Out-of-range values are rejected by the store."""
    level: float = Field(..., description=f"Integer between {ENERGY_MIN} and {ENERGY_MAX}")


class ResetRequest(BaseModel):
    """Resetting the day must be explicitly confirmed."""
    confirm: bool = False


class CommandRequest(BaseModel):
    """Typed command, e.g. "I drank 2 glasses of water"."""
    text: str = Field(..., min_length=1, max_length=2000)


class ImageAnalysisRequest(BaseModel):
    """Food photo as base64 or ``data:image/...;base64,`` URL (webcam screenshot)."""
    image: str = Field(..., min_length=1)
    media_type: str = "image/jpeg"


class ActionResult(BaseModel):
    """Response for a voice, text or image request."""
    request_id: int
    source: RequestSource
    status: OutcomeStatus
    transcription: Optional[str] = None
    nutrition: Optional[NutritionEstimate] = None
    change_set: Optional[ChangeSet] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    metrics: MetricSnapshot

    @classmethod
    def from_outcome(cls, outcome: RequestOutcome, metrics: MetricSnapshot) -> "ActionResult":
        return cls(
            request_id=outcome.request_id,
            source=outcome.source,
            status=outcome.status,
            transcription=outcome.transcription,
            nutrition=outcome.nutrition,
            change_set=outcome.change_set,
            error_kind=outcome.error_kind,
            error_message=outcome.error_message,
            metrics=metrics,
        )
