"""Model handle: read model bytes once, own the ONNX session, release it at shutdown.

The handle moves through ``UNLOADED -> LOADING -> READY | LOAD_FAILED``.
Loading is one-shot; a failed load is terminal for that handle. Byte sources
abstract where the model lives (a file on disk, bytes already in memory, or a
Hugging Face Hub repository).
"""

from __future__ import annotations

import logging
import threading
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from leafdx.ml.errors import ModelLoadError, ModelNotReadyError
from leafdx.ml.labels import NUM_CLASSES

if TYPE_CHECKING:
    from types import TracebackType

    from leafdx.config import Settings

logger = logging.getLogger(__name__)

# A declared tensor dimension: a fixed size, or a symbolic / unknown one.
Dim = int | str | None


# ---------------------------------------------------------------------------
# Byte sources
# ---------------------------------------------------------------------------


class ModelSource(Protocol):
    """Where model bytes come from."""

    @property
    def description(self) -> str:
        """Human-readable origin of the model, for logs."""
        ...

    def read_bytes(self) -> bytes:
        """Return the serialized ONNX model."""
        ...


class FileModelSource:
    """Reads the model from a local file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def description(self) -> str:
        return str(self._path)

    def read_bytes(self) -> bytes:
        return self._path.read_bytes()


class BytesModelSource:
    """Serves model bytes already held in memory (e.g. a bundled asset)."""

    def __init__(self, data: bytes, description: str = "<memory>") -> None:
        self._data = data
        self._description = description

    @property
    def description(self) -> str:
        return self._description

    def read_bytes(self) -> bytes:
        return self._data


class HuggingFaceModelSource:
    """Downloads the model from a Hugging Face Hub repository into a local directory."""

    def __init__(
        self,
        repo_id: str,
        filename: str,
        local_dir: str | Path,
        subfolder: str | None = None,
    ) -> None:
        self._repo_id = repo_id
        self._filename = filename
        self._subfolder = subfolder
        self._local_dir = Path(local_dir)

    @property
    def description(self) -> str:
        return f"hf://{self._repo_id}/{self._filename}"

    def read_bytes(self) -> bytes:
        self._local_dir.mkdir(parents=True, exist_ok=True)
        downloaded = Path(
            hf_hub_download(
                repo_id=self._repo_id,
                filename=self._filename,
                subfolder=self._subfolder,
                local_dir=str(self._local_dir),
            )
        )
        logger.info("Downloaded %s to %s", self.description, downloaded)
        return downloaded.read_bytes()


def build_model_source(settings: Settings) -> ModelSource:
    """Pick the byte source described by the settings."""
    if settings.model_repo_id:
        return HuggingFaceModelSource(
            repo_id=settings.model_repo_id,
            filename=settings.model_filename,
            subfolder=settings.model_subfolder,
            local_dir=settings.models_dir,
        )
    return FileModelSource(settings.model_path)


# ---------------------------------------------------------------------------
# Handle
# ---------------------------------------------------------------------------


class ModelState(StrEnum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    LOAD_FAILED = "load_failed"


class ModelHandle:
    """Owns a single ONNX InferenceSession bound to one input and one output.

    Load and close are serialized by a lock. Once READY the session is only
    read, and ONNX Runtime allows concurrent ``run`` calls on it.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._lock = threading.Lock()
        self._state = ModelState.UNLOADED
        self._session: InferenceSession | None = None
        self._input_name = ""
        self._output_name = ""
        self._input_shape: tuple[Dim, ...] = ()
        self._source_description: str | None = None
        self._generation = 0

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    def __enter__(self) -> ModelHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Public API ---------------------------------------------------------

    @property
    def state(self) -> ModelState:
        with self._lock:
            return self._state

    @property
    def source_description(self) -> str | None:
        return self._source_description

    @property
    def session(self) -> InferenceSession:
        """Return the live session.

        Raises:
            ModelNotReadyError: If the handle is not READY.
        """
        with self._lock:
            if self._state is not ModelState.READY or self._session is None:
                raise ModelNotReadyError(f"Model is not ready (state={self._state})")
            return self._session

    @property
    def input_name(self) -> str:
        return self._input_name

    @property
    def output_name(self) -> str:
        return self._output_name

    @property
    def input_shape(self) -> tuple[Dim, ...]:
        return self._input_shape

    def load(self, source: ModelSource) -> None:
        """Read model bytes from ``source`` and create the session.

        Raises:
            ModelLoadError: If the handle was already loaded (or failed), the
                source cannot be read, the bytes are not a usable model, or
                the handle was closed while loading.
        """
        with self._lock:
            if self._state is not ModelState.UNLOADED:
                raise ModelLoadError(f"Model handle cannot load from state {self._state}")
            self._state = ModelState.LOADING
            self._source_description = source.description
            generation = self._generation

        # Session creation runs outside the lock so state stays observable while loading.
        logger.info("Loading model from %s", source.description)
        try:
            session = self._create_session(source)
        except ModelLoadError:
            with self._lock:
                if self._generation == generation:
                    self._state = ModelState.LOAD_FAILED
            raise

        inputs = session.get_inputs()
        outputs = session.get_outputs()
        with self._lock:
            # close() during LOADING bumps the generation; the new session is dropped.
            if self._generation != generation:
                raise ModelLoadError(f"Model handle was closed while loading from {source.description}")
            self._session = session
            self._input_name = inputs[0].name
            self._output_name = outputs[0].name
            self._input_shape = tuple(inputs[0].shape)
            self._state = ModelState.READY

        self._warn_on_output_width(outputs[0].shape)
        logger.info(
            "Model ready (input=%s%s, output=%s, providers=%s)",
            self._input_name,
            list(self._input_shape),
            self._output_name,
            session.get_providers(),
        )

    def close(self) -> None:
        """Release the session, or abandon a load in progress. Safe to call more than once."""
        with self._lock:
            if self._state is ModelState.LOADING:
                self._generation += 1
                self._state = ModelState.UNLOADED
                logger.info("Model load abandoned by close")
                return
            if self._session is None:
                return
            self._session = None
            self._state = ModelState.UNLOADED
            logger.info("Model session released")

    # -- Internal -----------------------------------------------------------

    def _create_session(self, source: ModelSource) -> InferenceSession:
        try:
            model_bytes = source.read_bytes()
        except Exception as exc:
            raise ModelLoadError(f"Failed to read model from {source.description}: {exc}") from exc

        try:
            session = InferenceSession(
                model_bytes,
                sess_options=self._session_options,
                providers=self._providers,
            )
        except Exception as exc:
            raise ModelLoadError(f"Failed to create session from {source.description}: {exc}") from exc

        if not session.get_inputs() or not session.get_outputs():
            raise ModelLoadError(f"Model from {source.description} declares no inputs or no outputs")
        return session

    @staticmethod
    def _warn_on_output_width(shape: list[Dim]) -> None:
        width = shape[-1] if shape else None
        if isinstance(width, int) and width != NUM_CLASSES:
            logger.warning(
                "Model output width %d does not match the %d-entry label table",
                width,
                NUM_CLASSES,
            )

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
