"""Single forward pass through the loaded model."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from leafdx.ml.errors import InferenceError, ShapeMismatchError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from leafdx.ml.model_handle import Dim, ModelHandle


def infer(model: ModelHandle, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
    """Run ``tensor`` through the model and return the first output as a flat logit vector.

    Raises:
        ModelNotReadyError: If the handle is not READY.
        ShapeMismatchError: If the tensor's dtype or shape disagrees with the
            model's declared input.
        InferenceError: If ONNX Runtime fails or the output is not finite.
    """
    session = model.session
    _check_input(tensor, model.input_shape)

    try:
        outputs = session.run([model.output_name], {model.input_name: tensor})
    except Exception as exc:
        raise InferenceError(f"Forward pass failed: {exc}") from exc

    if not outputs:
        raise InferenceError("Model returned no outputs")
    logits = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
    if not np.all(np.isfinite(logits)):
        raise InferenceError("Model produced non-finite logits")
    return logits


def _check_input(tensor: NDArray[np.float32], expected: tuple[Dim, ...]) -> None:
    if tensor.dtype != np.float32:
        raise ShapeMismatchError(f"Expected a float32 tensor, got {tensor.dtype}")
    if len(tensor.shape) != len(expected) or any(
        isinstance(want, int) and want > 0 and want != got for want, got in zip(expected, tensor.shape, strict=True)
    ):
        raise ShapeMismatchError(f"Tensor shape {tuple(tensor.shape)} does not match model input {list(expected)}")
