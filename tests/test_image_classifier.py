"""End-to-end tests for the classification pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import pytest
from helpers import dominant_logits, encode_image, load_with_session, make_fake_session

from leafdx.ml.errors import ImageDecodeError, ModelLoadError, ModelNotReadyError, UnknownClassError
from leafdx.ml.image_classifier import PlantDiseaseClassifier, classify
from leafdx.ml.labels import LABELS, NUM_CLASSES
from leafdx.ml.model_handle import FileModelSource, ModelHandle
from leafdx.ml.preprocessing import DecodedImage

if TYPE_CHECKING:
    from collections.abc import Callable

    from leafdx.config import Settings


def _black(size: int = 64) -> DecodedImage:
    return DecodedImage(pixels=np.zeros((size, size, 3), dtype=np.uint8))


class TestClassify:
    def test_black_image_end_to_end(self, settings: Settings) -> None:
        seen: list[np.ndarray] = []
        session = make_fake_session()

        def run(output_names: list[str], feeds: dict[str, np.ndarray]) -> list[np.ndarray]:
            seen.append(feeds["input"].copy())
            return [np.linspace(-2.0, 2.0, NUM_CLASSES, dtype=np.float32)[np.newaxis, :]]

        session.run.side_effect = run
        model = ModelHandle(settings)

        load_with_session(model, session)

        prediction = classify(model, _black(64))

        (tensor,) = seen
        assert tensor.shape == (1, 3, 128, 128)
        assert np.all(tensor == -1.0)
        assert prediction.label in LABELS
        assert 0.0 <= prediction.confidence_percent <= 100.0
        assert prediction.label == LABELS[-1]

    def test_dominant_first_class(self, model_factory: Callable[..., ModelHandle]) -> None:
        model = model_factory(dominant_logits(0))

        prediction = classify(model, _black())

        assert prediction.label == LABELS[0]
        assert prediction.confidence_percent == pytest.approx(100.0, abs=0.1)

    def test_tied_logits_pick_lower_index(self, model_factory: Callable[..., ModelHandle]) -> None:
        logits = [0.0] * NUM_CLASSES
        logits[6] = logits[13] = 4.0

        assert classify(model_factory(logits), _black()).index == 6

    def test_before_ready_raises_not_ready(self, settings: Settings) -> None:
        with pytest.raises(ModelNotReadyError):
            classify(ModelHandle(settings), _black())

    def test_after_failed_load_raises_not_ready(self, settings: Settings, tmp_path: Path) -> None:
        model = ModelHandle(settings)
        with pytest.raises(ModelLoadError):
            model.load(FileModelSource(tmp_path / "missing.onnx"))

        with pytest.raises(ModelNotReadyError):
            classify(model, _black())

    def test_after_close_raises_not_ready(self, ready_model: ModelHandle) -> None:
        ready_model.close()
        with pytest.raises(ModelNotReadyError):
            classify(ready_model, _black())

    def test_label_table_skew_is_surfaced(self, model_factory: Callable[..., ModelHandle]) -> None:
        model = model_factory(dominant_logits(12))
        with pytest.raises(UnknownClassError):
            classify(model, _black(), labels=LABELS[:5])

    def test_calls_are_independent(self, model_factory: Callable[..., ModelHandle]) -> None:
        model = model_factory(dominant_logits(3))
        first = classify(model, _black(32))
        second = classify(model, _black(200))
        assert first == second


class TestPlantDiseaseClassifier:
    def test_classify_uses_bound_model(self, model_factory: Callable[..., ModelHandle]) -> None:
        classifier = PlantDiseaseClassifier(model_factory(dominant_logits(2)))
        assert classifier.classify(_black()).label == "Potato- Early Blight"

    def test_labels_default_to_table(self, ready_model: ModelHandle) -> None:
        classifier = PlantDiseaseClassifier(ready_model)
        assert classifier.labels == LABELS
        assert classifier.model is ready_model

    def test_rank_returns_k_best(self, model_factory: Callable[..., ModelHandle]) -> None:
        logits = [0.0] * NUM_CLASSES
        logits[1], logits[8] = 6.0, 4.0
        classifier = PlantDiseaseClassifier(model_factory(logits))

        ranked = classifier.rank(_black(), 2)

        assert [p.index for p in ranked] == [1, 8]

    def test_classify_bytes_decodes_upload(self, model_factory: Callable[..., ModelHandle]) -> None:
        classifier = PlantDiseaseClassifier(model_factory(dominant_logits(14)))
        data = encode_image(np.full((30, 40, 3), 90, dtype=np.uint8), fmt="JPEG")

        ranked = classifier.classify_bytes(data, max_pixels=10_000, k=3)

        assert len(ranked) == 3
        assert ranked[0].label == "Tomato- Healthy"

    def test_classify_bytes_rejects_garbage(self, ready_model: ModelHandle) -> None:
        with pytest.raises(ImageDecodeError):
            PlantDiseaseClassifier(ready_model).classify_bytes(b"junk", max_pixels=10_000)
