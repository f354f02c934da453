"""Environment-based configuration for Soil Snapshot."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from SOILSNAP_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SOILSNAP_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082

    # Static model assets
    assets_dir: Path = Path("assets")
    metadata_location: str = "assets/metadata.json"
    model_path: Path = Path("assets/model.onnx")
    metadata_timeout: float = Field(default=10.0, gt=0)

    # Optional HuggingFace repo holding the model file (None = local only)
    model_repo_id: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Delay before inference so the uploaded image settles
    settle_delay: float = Field(default=0.1, ge=0)

    # Demo login gate
    login_email: str = "admin@gmail.com"
    login_password: str = "admin123"
    login_delay: float = Field(default=0.5, ge=0)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=10_485_760, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
