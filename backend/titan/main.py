"""
Titan OS - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional

from .config import Settings, settings as default_settings
from .api import metrics_router, actions_router
from .core.logging_config import setup_logging
from .core.metric_store import MetricStore
from .core.pipeline import ActionPipeline
from .llm.factory import create_llm_provider
from .middleware import RequestLoggingMiddleware
from .services import CommandClassifier, NutritionAnalyzer, TranscriptionService
from .storage import create_storage

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


async def build_session(app: FastAPI, settings: Settings) -> None:
    """Construct the metric store and request pipelines and attach them to ``app.state``."""
    storage = create_storage(settings.storage_type, settings.local_storage_path)
    store = await MetricStore.open(storage, settings.metrics_namespace)

    llm_provider = create_llm_provider(
        provider=settings.llm_provider,
        api_key=settings.inference_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout=settings.inference_timeout,
    )
    if llm_provider is None:
        logger.warning("No LLM API key configured; voice, text and image actions will fail")

    transcriber = TranscriptionService(
        api_key=settings.openai_api_key or settings.llm_api_key,
        model=settings.transcription_model,
        timeout=settings.inference_timeout,
    )
    classifier = CommandClassifier(
        llm_provider, timeout=settings.inference_timeout, temperature=settings.command_temperature
    )
    analyzer = NutritionAnalyzer(
        llm_provider, timeout=settings.inference_timeout, max_tokens=settings.image_max_tokens
    )

    app.state.metric_store = store
    app.state.voice_pipeline = ActionPipeline(
        store, transcriber=transcriber, classifier=classifier, name="voice"
    )
    app.state.image_pipeline = ActionPipeline(store, analyzer=analyzer, name="camera")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        setup_logging(settings)
        await build_session(app, settings)

        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Storage: {settings.storage_type} ({settings.local_storage_path})")
        logger.info(f"Log level: {settings.log_level.upper()}")
        yield
        logger.info(f"Shutting down {settings.app_name}")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Daily health tracker: water, sleep, energy and nutrition from voice, text and photos",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.log_api_requests:
        app.add_middleware(RequestLoggingMiddleware)

    app.include_router(metrics_router)
    app.include_router(actions_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": settings.app_name,
            "version": settings.app_version,
            "status": "running",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "storage": settings.storage_type,
            "version": settings.app_version
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "titan.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.debug
    )
