"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from soilsnap.config import Settings
    from soilsnap.ml.classifier import ClassifierLoader

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from soilsnap.api.routes import router
from soilsnap.config import get_settings
from soilsnap.ml.acquisition import ModelAcquisitionService
from soilsnap.ml.inference import InferencePool
from soilsnap.ml.model_manager import make_onnx_loader
from soilsnap.ml.pipeline import InferencePipeline
from soilsnap.notifications import Notifier, ProgressTracker
from soilsnap.session import Session

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings, loader: ClassifierLoader | None = None) -> None:
    """Wire the session collaborators onto ``app.state``. Acquisition is not started."""
    notifier = Notifier()
    progress = ProgressTracker()
    inference_pool = InferencePool(settings.max_concurrent)

    app.state.settings = settings
    app.state.session = Session()
    app.state.notifier = notifier
    app.state.progress = progress
    app.state.inference_pool = inference_pool
    app.state.acquisition = ModelAcquisitionService(
        loader=loader or make_onnx_loader(settings),
        notifier=notifier,
        metadata_location=settings.metadata_location,
        model_location=str(settings.model_path),
        metadata_timeout=settings.metadata_timeout,
    )
    app.state.pipeline = InferencePipeline(
        inference_pool,
        notifier,
        progress,
        settle_delay=settings.settle_delay,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: start acquisition on startup, clean up on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting Soil Snapshot (device=%s, model=%s, metadata=%s)",
        settings.device,
        settings.model_path,
        settings.metadata_location,
    )

    init_state(app, settings)
    acquisition: ModelAcquisitionService = app.state.acquisition
    acquisition.start()

    logger.info("Soil Snapshot accepting requests")
    yield

    logger.info("Shutting down Soil Snapshot")
    await acquisition.cancel()
    app.state.inference_pool.shutdown()
    logger.info("Soil Snapshot shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Soil Snapshot",
        description="Soil sample image classification with a pre-trained model",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()
