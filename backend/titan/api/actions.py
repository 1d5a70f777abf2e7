"""
Actions API endpoints - voice commands, typed commands and food photos.

Each request runs through an ActionPipeline. Failures are reported with an
``error_kind`` so the client can branch on it; the metrics are untouched.
"""

import base64
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse

from ..core.errors import ErrorKind, MetricValueError, StorageWriteError
from ..core.metric_store import MetricStore
from ..core.pipeline import ActionPipeline, OutcomeStatus, RequestOutcome, RequestSource
from ..models import ActionResult, CommandRequest, ImageAnalysisRequest, MetricSnapshot
from .deps import get_image_pipeline, get_metric_store, get_voice_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/actions", tags=["actions"])

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}

STATUS_BY_KIND = {
    ErrorKind.TRANSCRIPTION_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.INFERENCE_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.MALFORMED_ACTION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.UNKNOWN_ACTION_KIND: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_ACTION_PAYLOAD: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def _respond(outcome: RequestOutcome, store: MetricStore):
    """Map an outcome to an HTTP response."""
    result = ActionResult.from_outcome(outcome, MetricSnapshot.from_values(store.snapshot()))
    if outcome.status is OutcomeStatus.APPLIED:
        return result

    if outcome.status is OutcomeStatus.FAILED:
        status_code = STATUS_BY_KIND[outcome.error_kind]
        detail = outcome.error_message
    else:
        status_code = status.HTTP_409_CONFLICT
        detail = f"Request {outcome.request_id} was superseded by a newer request"

    content = result.model_dump(mode="json")
    content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content)


async def _guarded(coro):
    try:
        return await coro
    except MetricValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except StorageWriteError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post("/command", response_model=ActionResult)
async def submit_command(
    body: CommandRequest,
    pipeline: ActionPipeline = Depends(get_voice_pipeline),
    store: MetricStore = Depends(get_metric_store),
):
    """
    Interpret a typed command such as "I slept 7 hours" and apply it.
    """
    ticket = pipeline.begin(RequestSource.TEXT)
    outcome = await _guarded(pipeline.submit_text(ticket, body.text))
    return _respond(outcome, store)


@router.post("/voice", response_model=ActionResult)
async def submit_voice(
    audio: UploadFile = File(...),
    pipeline: ActionPipeline = Depends(get_voice_pipeline),
    store: MetricStore = Depends(get_metric_store),
):
    """
    Transcribe a recorded voice command, interpret it and apply it.

    Args:
        audio: Recording (webm, m4a, mp3, wav, ...)
    """
    ticket = pipeline.begin(RequestSource.VOICE)
    audio_data = await audio.read()
    outcome = await _guarded(
        pipeline.submit_voice(ticket, audio_data, filename=audio.filename or "recording.webm")
    )
    return _respond(outcome, store)


@router.post("/image", response_model=ActionResult)
async def submit_image(
    image: UploadFile = File(...),
    pipeline: ActionPipeline = Depends(get_image_pipeline),
    store: MetricStore = Depends(get_metric_store),
):
    """
    Estimate nutrition for an uploaded food photo and add it to today's totals.
    """
    if image.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported image type: {image.content_type}"
        )

    ticket = pipeline.begin(RequestSource.IMAGE)
    image_base64 = base64.b64encode(await image.read()).decode("utf-8")
    outcome = await _guarded(pipeline.submit_image(ticket, image_base64, image.content_type))
    return _respond(outcome, store)


@router.post("/image/base64", response_model=ActionResult)
async def submit_image_base64(
    body: ImageAnalysisRequest,
    pipeline: ActionPipeline = Depends(get_image_pipeline),
    store: MetricStore = Depends(get_metric_store),
):
    """
    Same as ``/actions/image`` for a webcam screenshot sent as a data URL.
    """
    ticket = pipeline.begin(RequestSource.IMAGE)
    outcome = await _guarded(pipeline.submit_image(ticket, body.image, body.media_type))
    return _respond(outcome, store)
