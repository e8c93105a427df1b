"""objstore - backend-agnostic object storage."""

from objstore.storage import (
    ObjectNotFoundError,
    ObjectStorageError,
    ObjectStore,
    StopWalk,
    StoreConfig,
    new_store,
    new_store_from_config,
)

__version__ = "0.1.0"

__all__ = [
    "ObjectNotFoundError",
    "ObjectStorageError",
    "ObjectStore",
    "StopWalk",
    "StoreConfig",
    "new_store",
    "new_store_from_config",
]
