"""objstore object storage abstraction.

One interface over several providers: writes are compressed transparently
and are write-once unless overwriting is enabled; listings walk objects by
logical name in key order.

Backends:
- FilesystemObjectStore: ``file://`` local directories (dev/test)
- GCSObjectStore: ``gs://`` Google Cloud Storage (``gcs`` extra)
- S3ObjectStore: ``s3://`` AWS S3 and compatible services (``s3`` extra)

The cloud backends are imported from their own modules so their SDKs stay
optional; ``new_store`` picks the backend from the URL scheme.
"""

from objstore.storage.config import StoreConfig, store_config_from_env
from objstore.storage.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    PathTraversalError,
    StopWalk,
    StorageBackendError,
    UnsupportedCompressionError,
    UnsupportedSchemeError,
    WalkCancelledError,
)
from objstore.storage.factory import new_store, new_store_from_config, new_store_from_env
from objstore.storage.filesystem_store import FilesystemObjectStore
from objstore.storage.location import ObjectNamer, StoreLocation
from objstore.storage.object_store import ObjectStore

__all__ = [
    "FilesystemObjectStore",
    "ObjectNamer",
    "ObjectNotFoundError",
    "ObjectStorageError",
    "ObjectStore",
    "PathTraversalError",
    "StopWalk",
    "StorageBackendError",
    "StoreConfig",
    "StoreLocation",
    "UnsupportedCompressionError",
    "UnsupportedSchemeError",
    "WalkCancelledError",
    "new_store",
    "new_store_from_config",
    "new_store_from_env",
    "store_config_from_env",
]
