"""Test helpers: settings factory and a fake ONNX session standing in for a real model."""

from __future__ import annotations

import io
from types import SimpleNamespace
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import numpy as np
from PIL import Image

from leafdx.config import Settings
from leafdx.ml.labels import NUM_CLASSES
from leafdx.ml.model_handle import BytesModelSource

if TYPE_CHECKING:
    from collections.abc import Sequence

    from leafdx.ml.model_handle import ModelHandle


def make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "device": "cpu",
        "model_path": "/tmp/leafdx_test_models/model.onnx",
        "models_dir": "/tmp/leafdx_test_models",
        "intra_op_threads": 0,
        "inter_op_threads": 1,
        "gpu_mem_limit": 2_147_483_648,
        "max_concurrent": 2,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


def make_fake_session(
    logits: Sequence[float] | None = None,
    input_shape: Sequence[int | str | None] = (1, 3, 128, 128),
    output_shape: Sequence[int | str | None] = (1, NUM_CLASSES),
) -> MagicMock:
    """Build a MagicMock shaped like onnxruntime.InferenceSession."""
    session = MagicMock()
    session.get_inputs.return_value = [SimpleNamespace(name="input", shape=list(input_shape), type="tensor(float)")]
    session.get_outputs.return_value = [SimpleNamespace(name="output", shape=list(output_shape), type="tensor(float)")]
    session.get_providers.return_value = ["CPUExecutionProvider"]
    values = np.zeros(NUM_CLASSES) if logits is None else logits
    session.run.return_value = [np.asarray(values, dtype=np.float32)[np.newaxis, :]]
    return session


def load_with_session(model: ModelHandle, session: MagicMock) -> None:
    """Drive ``model`` to READY with ``session`` in place of a real InferenceSession."""
    with patch("leafdx.ml.model_handle.InferenceSession", return_value=session):
        model.load(BytesModelSource(b"fake-onnx-bytes", description="test-model"))


def dominant_logits(index: int, value: float = 10.0) -> list[float]:
    logits = [0.0] * NUM_CLASSES
    logits[index] = value
    return logits


def encode_image(pixels: np.ndarray, fmt: str = "PNG", **save_kwargs: object) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()
