"""Exceptions raised by the classification pipeline."""

from __future__ import annotations


class ClassifierError(Exception):
    """Base class for all pipeline errors."""


class ModelLoadError(ClassifierError):
    """The model could not be read or a session could not be created.

    Terminal for the handle that raised it: a failed handle never retries.
    """


class InferenceError(ClassifierError):
    """The forward pass could not be executed."""


class ModelNotReadyError(InferenceError):
    """Inference was attempted before the model handle reached READY."""


class ShapeMismatchError(InferenceError):
    """The input tensor disagrees with the model's declared input."""


class UnknownClassError(ClassifierError):
    """The winning index has no entry in the label table."""


class ImageDecodeError(ClassifierError, ValueError):
    """Image bytes could not be decoded or exceed the size limit."""
