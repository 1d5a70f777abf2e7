"""
API dependencies - hand out the session objects built in the app lifespan.
"""

from fastapi import Request

from ..core.metric_store import MetricStore
from ..core.pipeline import ActionPipeline


def get_metric_store(request: Request) -> MetricStore:
    return request.app.state.metric_store


def get_voice_pipeline(request: Request) -> ActionPipeline:
    """Voice recordings and typed commands share the microphone channel."""
    return request.app.state.voice_pipeline


def get_image_pipeline(request: Request) -> ActionPipeline:
    return request.app.state.image_pipeline
