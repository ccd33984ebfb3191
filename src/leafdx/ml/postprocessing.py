"""Turn raw logits into probabilities and a labeled prediction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from leafdx.ml.errors import UnknownClassError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True)
class Prediction:
    """The winning class and its probability expressed as a percentage (0-100)."""

    label: str
    confidence_percent: float
    index: int


def softmax(logits: ArrayLike) -> NDArray[np.float32]:
    """Numerically stable softmax over a 1-D logit vector.

    The maximum is subtracted before exponentiating, so large logits do not
    overflow and adding a constant to every logit leaves the result unchanged.
    """
    values = np.asarray(logits, dtype=np.float64).reshape(-1)
    if values.size == 0:
        raise ValueError("Cannot apply softmax to an empty vector")
    exps = np.exp(values - values.max())
    return (exps / exps.sum()).astype(np.float32)


def postprocess(logits: ArrayLike, labels: Sequence[str]) -> Prediction:
    """Pick the top-1 class (ties go to the lowest index).

    Raises:
        UnknownClassError: If the logit vector is empty or the winning index
            has no entry in ``labels``.
    """
    values = np.asarray(logits, dtype=np.float32).reshape(-1)
    if values.size == 0:
        raise UnknownClassError("Model produced an empty logit vector")

    probs = softmax(values)
    index = int(np.argmax(probs))
    return _prediction_at(probs, index, labels)


def top_k(logits: ArrayLike, labels: Sequence[str], k: int) -> list[Prediction]:
    """Return the ``k`` most probable classes, best first, lower index first on ties.

    The winner must be in ``labels`` (as in :func:`postprocess`); runner-ups
    past the end of the table are skipped.

    Raises:
        UnknownClassError: If the logit vector is empty or the winning index
            has no entry in ``labels``.
    """
    values = np.asarray(logits, dtype=np.float32).reshape(-1)
    if values.size == 0:
        raise UnknownClassError("Model produced an empty logit vector")

    probs = softmax(values)
    order = np.argsort(-probs, kind="stable")
    best = _prediction_at(probs, int(order[0]), labels)
    runners_up = [int(i) for i in order[1:] if i < len(labels)][: k - 1]
    return [best, *(_prediction_at(probs, i, labels) for i in runners_up)]


def _prediction_at(probs: NDArray[np.float32], index: int, labels: Sequence[str]) -> Prediction:
    if not 0 <= index < len(labels):
        raise UnknownClassError(f"Class index {index} is outside the {len(labels)}-entry label table")
    return Prediction(
        label=labels[index],
        confidence_percent=float(probs[index]) * 100.0,
        index=index,
    )
