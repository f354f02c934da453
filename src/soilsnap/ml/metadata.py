"""Model metadata: the descriptive record published next to the model file.

The metadata document is a JSON object with at least ``modelName`` and
``labels``. Label order defines the canonical class order used by every
prediction sequence.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME: str = "Soil Classification Model"


class MetadataError(RuntimeError):
    """Raised when the metadata document cannot be fetched or parsed."""


class ModelMetadata(BaseModel):
    """Descriptive record for the trained classifier."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_name: str | None = Field(default=None, alias="modelName")
    labels: list[str] = Field(default_factory=list)
    image_size: int = Field(default=224, alias="imageSize", ge=1)

    @property
    def display_name(self) -> str:
        return self.model_name or DEFAULT_MODEL_NAME


def is_available(metadata: ModelMetadata | None) -> bool:
    """Empty or absent metadata counts as not yet available."""
    return metadata is not None and len(metadata.labels) > 0


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


async def _read_remote(location: str, timeout: float, transport: httpx.AsyncBaseTransport | None) -> bytes:
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            response = await client.get(location)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise MetadataError(f"Metadata request returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise MetadataError(f"Metadata request failed: {exc}") from exc
    return response.content


async def _read_local(location: str) -> bytes:
    path = Path(location)
    try:
        return await asyncio.to_thread(path.read_bytes)
    except (OSError, ValueError) as exc:
        raise MetadataError(f"Cannot read metadata file {path}: {exc.strerror or exc}") from exc


async def fetch_metadata(
    location: str,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ModelMetadata:
    """Fetch and validate the metadata document from a path or URL.

    Raises:
        MetadataError: On network errors, non-success status, unreadable
            files, malformed JSON or a body that does not match the schema.
    """
    raw = await _read_remote(location, timeout, transport) if _is_url(location) else await _read_local(location)

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as exc:
        raise MetadataError(f"Metadata at {location} is not valid JSON") from exc

    try:
        metadata = ModelMetadata.model_validate(payload)
    except ValidationError as exc:
        raise MetadataError(f"Metadata at {location} is malformed: {exc.error_count()} invalid field(s)") from exc

    logger.info("Fetched metadata for %s (%d labels)", metadata.display_name, len(metadata.labels))
    return metadata
