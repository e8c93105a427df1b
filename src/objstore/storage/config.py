"""Store configuration model.

Environment Variables:
    OBJSTORE_URL: Base location (``gs://``, ``s3://``, ``file://`` or a path)
    OBJSTORE_EXTENSION: Suffix appended to every object name (default: none)
    OBJSTORE_COMPRESSION: "none", "gzip" or "zstd" (default: "none")
    OBJSTORE_OVERWRITE: Set to "1" to let writes replace objects (default: off)
"""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field, field_validator

from objstore.observability.tracing import get_env_bool
from objstore.storage.compression import normalize_scheme
from objstore.storage.errors import StorageBackendError, UnsupportedCompressionError

OBJSTORE_URL_ENV = "OBJSTORE_URL"
OBJSTORE_EXTENSION_ENV = "OBJSTORE_EXTENSION"
OBJSTORE_COMPRESSION_ENV = "OBJSTORE_COMPRESSION"
OBJSTORE_OVERWRITE_ENV = "OBJSTORE_OVERWRITE"


class StoreConfig(BaseModel):
    """Immutable description of a store: where it lives and how it encodes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = Field(..., min_length=1, description="Base location URL or local path")
    extension: str = Field(default="", description="Suffix appended to object names")
    compression: str = Field(default="none", description="Object body compression scheme")
    overwrite: bool = Field(default=False, description="Whether writes may replace objects")

    @field_validator("url")
    @classmethod
    def no_blank_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("url cannot be empty or whitespace-only")
        return v.strip()

    @field_validator("extension")
    @classmethod
    def dotted_extension(cls, v: str) -> str:
        v = v.strip()
        if v and not v.startswith("."):
            return f".{v}"
        return v

    @field_validator("compression")
    @classmethod
    def known_compression(cls, v: str) -> str:
        try:
            return normalize_scheme(v)
        except UnsupportedCompressionError as e:
            raise ValueError(e.message) from e


def store_config_from_env() -> StoreConfig:
    """Build a StoreConfig from OBJSTORE_* environment variables.

    Raises:
        StorageBackendError: If OBJSTORE_URL is not set.
    """
    url = os.environ.get(OBJSTORE_URL_ENV, "").strip()
    if not url:
        raise StorageBackendError(f"{OBJSTORE_URL_ENV} is not set")
    return StoreConfig(
        url=url,
        extension=os.environ.get(OBJSTORE_EXTENSION_ENV, ""),
        compression=os.environ.get(OBJSTORE_COMPRESSION_ENV, ""),
        overwrite=get_env_bool(OBJSTORE_OVERWRITE_ENV, False),
    )
