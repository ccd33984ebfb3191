"""Worker pool that keeps the blocking pipeline off the event loop.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> classify()

Requests beyond the semaphore limit wait up to ``queue_timeout`` seconds,
then the caller gets :class:`TimeoutError` (mapped to 503 by the API).
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from leafdx.ml.errors import ModelLoadError

if TYPE_CHECKING:
    from collections.abc import Callable

    from leafdx.config import Settings
    from leafdx.ml.model_handle import ModelHandle, ModelSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InferencePool:
    """Bounds concurrent pipeline runs and executes them on worker threads."""

    def __init__(self, settings: Settings) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._queue_timeout = settings.queue_timeout
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="leafdx-inference",
        )
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run a blocking function on the pool once a slot is free.

        Raises:
            TimeoutError: If no slot frees up within the queue timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._queue_timeout)
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

    def load_model(self, model: ModelHandle, source: ModelSource) -> Future[None]:
        """Start loading ``model`` on a worker thread.

        A failed load leaves the handle in LOAD_FAILED and is logged here;
        the returned future never raises :class:`ModelLoadError`.
        """
        return self._executor.submit(_load_and_log, model, source)

    @property
    def active_count(self) -> int:
        """Number of currently running pipeline calls."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Wait for running work and stop the worker threads."""
        self._executor.shutdown(wait=True)


def _load_and_log(model: ModelHandle, source: ModelSource) -> None:
    try:
        model.load(source)
    except ModelLoadError:
        logger.exception("Model failed to load from %s", source.description)
