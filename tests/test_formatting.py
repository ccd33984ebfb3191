"""Tests for display formatting of predictions."""

from __future__ import annotations

import pytest

from leafdx.ml.formatting import DisplayResult, format_prediction
from leafdx.ml.postprocessing import Prediction


class TestFormatPrediction:
    def test_label_is_verbatim(self) -> None:
        label = "Tomato- Spider Mites (Two-spotted spider_mite)"
        result = format_prediction(Prediction(label=label, confidence_percent=50.0, index=10))
        assert result.display_label == label

    @pytest.mark.parametrize(
        ("confidence", "expected"),
        [
            (86.7612, "86.76% Precision"),
            (100.0, "100.00% Precision"),
            (0.0, "0.00% Precision"),
            (6.666666, "6.67% Precision"),
            (0.004, "0.00% Precision"),
        ],
    )
    def test_confidence_two_decimals(self, confidence: float, expected: str) -> None:
        result = format_prediction(Prediction(label="Potato- Healthy", confidence_percent=confidence, index=4))
        assert result.display_confidence == expected

    def test_returns_display_result(self) -> None:
        result = format_prediction(Prediction(label="Potato- Healthy", confidence_percent=42.0, index=4))
        assert result == DisplayResult(display_label="Potato- Healthy", display_confidence="42.00% Precision")
