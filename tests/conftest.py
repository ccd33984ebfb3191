"""Shared fixtures for the LeafDx test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from helpers import load_with_session, make_fake_session, make_settings

from leafdx.ml.model_handle import ModelHandle

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from unittest.mock import MagicMock

    from leafdx.config import Settings


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def fake_session() -> MagicMock:
    return make_fake_session()


@pytest.fixture()
def ready_model(settings: Settings, fake_session: MagicMock) -> ModelHandle:
    """A READY handle backed by ``fake_session``."""
    model = ModelHandle(settings)
    load_with_session(model, fake_session)
    return model


@pytest.fixture()
def model_factory(settings: Settings) -> Callable[..., ModelHandle]:
    """Build READY handles whose fake session returns the given logits."""

    def factory(logits: Sequence[float] | None = None) -> ModelHandle:
        model = ModelHandle(settings)
        load_with_session(model, make_fake_session(logits))
        return model

    return factory
