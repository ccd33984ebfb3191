"""Plant-disease image classifier: preprocess, forward pass, softmax, top-1."""

from __future__ import annotations

from typing import TYPE_CHECKING

from leafdx.ml.engine import infer
from leafdx.ml.labels import LABELS
from leafdx.ml.postprocessing import Prediction, postprocess, top_k
from leafdx.ml.preprocessing import decode_image, preprocess

if TYPE_CHECKING:
    from collections.abc import Sequence

    from leafdx.ml.model_handle import ModelHandle
    from leafdx.ml.preprocessing import DecodedImage


def classify(model: ModelHandle, image: DecodedImage, labels: Sequence[str] = LABELS) -> Prediction:
    """Classify a decoded leaf image.

    Blocks the calling thread for the whole pipeline. Either returns a fully
    valid prediction or raises a :class:`~leafdx.ml.errors.ClassifierError`.
    """
    logits = infer(model, preprocess(image))
    return postprocess(logits, labels)


class PlantDiseaseClassifier:
    """Binds the pipeline to the process-wide model handle."""

    def __init__(self, model: ModelHandle, labels: Sequence[str] = LABELS) -> None:
        self._model = model
        self._labels = tuple(labels)

    @property
    def model(self) -> ModelHandle:
        return self._model

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    def classify(self, image: DecodedImage) -> Prediction:
        return classify(self._model, image, self._labels)

    def rank(self, image: DecodedImage, k: int) -> list[Prediction]:
        """Return the ``k`` most probable classes, best first."""
        logits = infer(self._model, preprocess(image))
        return top_k(logits, self._labels, k)

    def classify_bytes(self, image_bytes: bytes, max_pixels: int, k: int = 1) -> list[Prediction]:
        """Decode ``image_bytes`` and rank it; the first entry is the top-1 prediction."""
        return self.rank(decode_image(image_bytes, max_pixels), k)
