"""Environment-based configuration for LeafDx."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from leafdx.ml.labels import NUM_CLASSES


class Settings(BaseSettings):
    """Application settings loaded from LEAFDX_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEAFDX_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    log_level: str = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model source: a local file, or the Hugging Face Hub when model_repo_id is set
    model_path: str = "models/Plant_disease_MobileNetV3.onnx"
    model_repo_id: str | None = None
    model_filename: str = "Plant_disease_MobileNetV3.onnx"
    model_subfolder: str | None = None
    models_dir: str = "models"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)
    queue_timeout: float = Field(default=5.0, gt=0)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    # Response
    top_k: int = Field(default=3, ge=1, le=NUM_CLASSES)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
