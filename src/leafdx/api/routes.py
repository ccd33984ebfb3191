"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status

from leafdx.api.middleware import verify_api_key
from leafdx.api.schemas import (
    ClassifyImageResponse,
    ErrorResponse,
    HealthResponse,
    LabelInfo,
    LabelsResponse,
    RankedClass,
)
from leafdx.ml.errors import ClassifierError, ImageDecodeError, ModelNotReadyError
from leafdx.ml.formatting import format_prediction
from leafdx.ml.model_handle import ModelState

if TYPE_CHECKING:
    from leafdx.config import Settings
    from leafdx.ml.image_classifier import PlantDiseaseClassifier
    from leafdx.ml.inference import InferencePool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_classifier(request: Request) -> PlantDiseaseClassifier:
    classifier: PlantDiseaseClassifier = request.app.state.classifier
    return classifier


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify a leaf image",
)
async def classify_image(request: Request, file: UploadFile) -> ClassifyImageResponse:
    """Decode an uploaded leaf photo and return the most likely disease class."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    classifier = _get_classifier(request)

    model_state = classifier.model.state
    if model_state is not ModelState.READY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Model is not ready (state={model_state})",
        )

    data = await file.read()
    if len(data) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File exceeds the {settings.max_file_size} byte limit",
        )

    try:
        ranked = await pool.run(classifier.classify_bytes, data, settings.max_image_pixels, settings.top_k)
    except TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inference queue is full, try again later",
        ) from None
    except ImageDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ModelNotReadyError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except ClassifierError as exc:
        logger.exception("Classification failed for %s", file.filename)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    best = ranked[0]
    display = format_prediction(best)
    return ClassifyImageResponse(
        label=best.label,
        class_index=best.index,
        confidence_percent=best.confidence_percent,
        display_label=display.display_label,
        display_confidence=display.display_confidence,
        top=[
            RankedClass(label=p.label, class_index=p.index, confidence_percent=p.confidence_percent)
            for p in ranked
        ],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    model = _get_classifier(request).model
    model_state = model.state
    return HealthResponse(
        status="ok" if model_state is ModelState.READY else "degraded",
        model_state=str(model_state),
        model_source=model.source_description,
        gpu=settings.device == "cuda",
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/labels",
    response_model=LabelsResponse,
    summary="List the classifier's labels",
)
async def list_labels(request: Request) -> LabelsResponse:
    """Return the label table in model output order."""
    labels = _get_classifier(request).labels
    return LabelsResponse(labels=[LabelInfo(index=i, label=label) for i, label in enumerate(labels)])
