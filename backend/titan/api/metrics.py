"""
Metrics API endpoints - dashboard values, manual steps, energy slider, reset day.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.errors import MetricValueError, StorageWriteError
from ..core.metric_store import MetricStore
from ..core.metrics import STEP_SIZES, Metric
from ..models import EnergyUpdate, MetricSnapshot, ResetRequest
from .deps import get_metric_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics", tags=["metrics"])


def _steppable(metric: Metric) -> Metric:
    if metric not in STEP_SIZES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{metric.value} has no manual step"
        )
    return metric


def _storage_unavailable(e: StorageWriteError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("", response_model=MetricSnapshot)
async def get_metrics(store: MetricStore = Depends(get_metric_store)):
    """Current values of all seven metrics."""
    return MetricSnapshot.from_values(store.snapshot())


@router.post("/{metric}/increment", response_model=MetricSnapshot)
async def increment_metric(metric: Metric, store: MetricStore = Depends(get_metric_store)):
    """Manual "+" button: water +250 ml, sleep +0.5 h."""
    try:
        await store.step(_steppable(metric), 1)
    except StorageWriteError as e:
        raise _storage_unavailable(e)
    return MetricSnapshot.from_values(store.snapshot())


@router.post("/{metric}/decrement", response_model=MetricSnapshot)
async def decrement_metric(metric: Metric, store: MetricStore = Depends(get_metric_store)):
    """Manual "-" button; never goes below 0."""
    try:
        await store.step(_steppable(metric), -1)
    except StorageWriteError as e:
        raise _storage_unavailable(e)
    return MetricSnapshot.from_values(store.snapshot())


@router.put("/energy_level", response_model=MetricSnapshot)
async def set_energy_level(update: EnergyUpdate, store: MetricStore = Depends(get_metric_store)):
    """Energy slider (absolute value)."""
    try:
        await store.set(Metric.ENERGY, update.level)
    except MetricValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except StorageWriteError as e:
        raise _storage_unavailable(e)
    return MetricSnapshot.from_values(store.snapshot())


@router.post("/reset", response_model=MetricSnapshot)
async def reset_day(body: ResetRequest, store: MetricStore = Depends(get_metric_store)):
    """
    Reset all tracking data for today.

    Requires ``{"confirm": true}``; anything else leaves every metric untouched.
    """
    if not body.confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Reset must be confirmed with {\"confirm\": true}"
        )
    try:
        values = await store.reset_all()
    except StorageWriteError as e:
        raise _storage_unavailable(e)
    logger.info("Day reset by user")
    return MetricSnapshot.from_values(values)
