"""Store construction from URLs and configuration.

The backend is chosen by URL scheme. Provider SDKs are imported only when
their backend is requested, so the cloud extras stay optional.
"""

from __future__ import annotations

import logging
from typing import Any

from objstore.storage.config import StoreConfig, store_config_from_env
from objstore.storage.errors import StorageBackendError, UnsupportedSchemeError
from objstore.storage.location import StoreLocation
from objstore.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

SUPPORTED_STORE_SCHEMES = ("file", "gs", "s3")

_EXTRAS = {"gs": "gcs", "s3": "s3"}


def _missing_sdk(scheme: str, url: str, exc: ImportError) -> StorageBackendError:
    return StorageBackendError(
        f"{scheme}:// stores need the '{_EXTRAS[scheme]}' extra "
        f"(pip install 'objstore[{_EXTRAS[scheme]}]')",
        url=url,
        cause=exc,
    )


def new_store(
    url: str,
    *,
    extension: str = "",
    compression: str = "",
    overwrite: bool = False,
    **options: Any,
) -> ObjectStore:
    """Create the store for ``url``.

    Args:
        url: ``gs://bucket/path``, ``s3://bucket/path``, ``file:///dir`` or a
            plain local path.
        extension: Suffix appended to every object name.
        compression: "none", "gzip" or "zstd".
        overwrite: Whether writes may replace existing objects.
        **options: Cloud client options (``client``, ``project``,
            ``endpoint_url``, ``region``). ``file://`` stores take none.

    Raises:
        UnsupportedSchemeError: If no backend handles the URL scheme.
        StorageBackendError: If the backend's SDK is not installed, or
            options are given for a ``file://`` store.
    """
    location = StoreLocation.parse(url)
    settings: dict[str, Any] = {
        "extension": extension,
        "compression": compression,
        "overwrite": overwrite,
    }

    if location.scheme == "file":
        if options:
            raise StorageBackendError(
                f"file:// stores take no client options, got: {', '.join(sorted(options))}",
                url=url,
            )
        from objstore.storage.filesystem_store import FilesystemObjectStore

        store: ObjectStore = FilesystemObjectStore(location, **settings)
    elif location.scheme == "gs":
        try:
            from objstore.storage.gcs_store import GCSObjectStore
        except ImportError as e:
            raise _missing_sdk("gs", url, e) from e
        store = GCSObjectStore(location, **settings, **options)
    elif location.scheme == "s3":
        try:
            from objstore.storage.s3_store import S3ObjectStore
        except ImportError as e:
            raise _missing_sdk("s3", url, e) from e
        store = S3ObjectStore(location, **settings, **options)
    else:
        raise UnsupportedSchemeError(location.scheme, url=url)

    logger.debug("Created store: backend=%s", store.backend_name)
    return store


def new_store_from_config(config: StoreConfig, **options: Any) -> ObjectStore:
    """Create the store described by ``config``."""
    return new_store(
        config.url,
        extension=config.extension,
        compression=config.compression,
        overwrite=config.overwrite,
        **options,
    )


def new_store_from_env(**options: Any) -> ObjectStore:
    """Create the store described by OBJSTORE_* environment variables."""
    return new_store_from_config(store_config_from_env(), **options)
