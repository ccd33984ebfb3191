"""Render a prediction for display."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from leafdx.ml.postprocessing import Prediction

CONFIDENCE_SUFFIX = "Precision"


@dataclass(frozen=True)
class DisplayResult:
    display_label: str
    display_confidence: str


def format_prediction(prediction: Prediction) -> DisplayResult:
    """Build display strings straight from the structured prediction, e.g. ``"86.76% Precision"``."""
    return DisplayResult(
        display_label=prediction.label,
        display_confidence=f"{prediction.confidence_percent:.2f}% {CONFIDENCE_SUFFIX}",
    )
