"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leafdx import __version__
from leafdx.api.routes import router
from leafdx.config import get_settings
from leafdx.ml.image_classifier import PlantDiseaseClassifier
from leafdx.ml.inference import InferencePool
from leafdx.ml.model_handle import ModelHandle, build_model_source

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: start loading the model, release it on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    source = build_model_source(settings)
    logger.info(
        "Starting LeafDx (device=%s, max_concurrent=%s, model=%s)",
        settings.device,
        settings.max_concurrent,
        source.description,
    )

    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    with ModelHandle(settings) as model:
        app.state.classifier = PlantDiseaseClassifier(model)
        # Requests are served (with 503 for classification) while the model loads.
        loading = inference_pool.load_model(model, source)

        logger.info("LeafDx accepting requests")
        yield

        logger.info("Shutting down LeafDx")
        await asyncio.wrap_future(loading)
        inference_pool.shutdown()
    logger.info("LeafDx shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="LeafDx",
        description="Plant-disease classification API for leaf images",
        version=__version__,
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


def run() -> None:
    """Serve the app with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("leafdx.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
