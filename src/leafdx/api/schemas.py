"""Pydantic request/response schemas for the LeafDx API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RankedClass(BaseModel):
    """One class from the ranked prediction list."""

    label: str
    class_index: int = Field(ge=0)
    confidence_percent: float = Field(ge=0.0, le=100.0)


class ClassifyImageResponse(BaseModel):
    """Top-1 prediction plus its display strings and the runner-up classes."""

    label: str
    class_index: int = Field(ge=0)
    confidence_percent: float = Field(ge=0.0, le=100.0, description="Top-1 probability as a percentage")
    display_label: str
    display_confidence: str = Field(description="Confidence rounded to two decimals, e.g. '86.76% Precision'")
    top: list[RankedClass]


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = Field(description="'ok' when the model is ready, otherwise 'degraded'")
    model_state: str = Field(description="'unloaded', 'loading', 'ready', or 'load_failed'")
    model_source: str | None = Field(default=None, description="Where the model is (being) loaded from")
    gpu: bool
    concurrent_requests: int
    queue_depth: int


class LabelInfo(BaseModel):
    """A single entry of the label table."""

    index: int
    label: str


class LabelsResponse(BaseModel):
    """The classifier's label table in model output order."""

    labels: list[LabelInfo]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
