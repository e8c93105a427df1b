"""objstore ObjectStore interface definition.

Provides the ObjectStore base class that every storage backend implements.
Backends supply the provider calls (write, open, delete, exists, walk_from,
sub_store); naming, listing bounds, local-file push and byte helpers are
shared here.
"""

from __future__ import annotations

import io
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, BinaryIO

from objstore.storage.compression import normalize_scheme
from objstore.storage.location import ObjectNamer, StoreLocation
from objstore.storage.tracing import traced_storage_operation
from objstore.storage.walk import DEFAULT_LIST_LIMIT, Visitor, list_names

logger = logging.getLogger(__name__)


def as_stream(data: IO[bytes] | bytes | bytearray) -> IO[bytes]:
    """Return ``data`` as a readable binary stream."""
    if isinstance(data, (bytes, bytearray)):
        return io.BytesIO(data)
    return data


class ObjectStore(ABC):
    """Abstract base class for object storage backends.

    A store is rooted at a base location and configured once with a file
    extension appended to every name, a compression scheme applied to every
    object body, and an overwrite flag. Configuration is immutable.

    Implementations:
    - FilesystemObjectStore: ``file://`` local directories
    - GCSObjectStore: ``gs://`` Google Cloud Storage
    - S3ObjectStore: ``s3://`` AWS S3 and S3-compatible services
    """

    def __init__(
        self,
        location: StoreLocation | str,
        *,
        extension: str = "",
        compression: str = "",
        overwrite: bool = False,
    ) -> None:
        if isinstance(location, str):
            location = StoreLocation.parse(location)
        self._location = location
        self._extension = extension
        self._compression = normalize_scheme(compression)
        self._overwrite = overwrite
        self._namer = ObjectNamer(location, extension)

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability.

        Returns:
            Backend name string (e.g., "filesystem", "gcs", "s3").
        """
        ...

    @property
    def base_url(self) -> StoreLocation:
        return self._location

    @property
    def extension(self) -> str:
        return self._extension

    @property
    def compression(self) -> str:
        return self._compression

    @property
    def overwrite(self) -> bool:
        return self._overwrite

    def object_path(self, name: str) -> str:
        """Return the provider key for ``name``."""
        return self._namer.object_path(name)

    def object_url(self, name: str) -> str:
        """Return the full URL of ``name`` (e.g. ``gs://bucket/root/name.ext``)."""
        return self._namer.object_url(name)

    def key_to_name(self, key: str) -> str:
        return self._namer.key_to_name(key)

    def _effective_overwrite(self, overwrite: bool | None) -> bool:
        return self._overwrite if overwrite is None else overwrite

    @abstractmethod
    def write(
        self,
        name: str,
        data: IO[bytes] | bytes,
        *,
        overwrite: bool | None = None,
    ) -> bool:
        """Store an object, compressing its body.

        Args:
            name: Logical object name.
            data: Binary stream (read to EOF) or bytes.
            overwrite: Override the store's overwrite flag for this call.

        Returns:
            True if the object was written. False if overwriting is disabled
            and the object already existed; that is not an error.

        Raises:
            Provider errors other than the write-once collision, unchanged.
        """
        ...

    @abstractmethod
    def open(self, name: str) -> BinaryIO:
        """Open an object for reading its decompressed body.

        The caller must close the returned stream.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Return True if the object exists.

        Absence is not an error; any other provider failure propagates.
        """
        ...

    @abstractmethod
    def walk_from(
        self,
        prefix: str,
        starting_point: str,
        visit: Visitor,
        *,
        cancel: threading.Event | None = None,
    ) -> int:
        """Visit every object under ``prefix`` in key order.

        Args:
            prefix: Listing prefix relative to the store base. A trailing
                ``/`` restricts the walk to that directory.
            starting_point: Resume from this name (inclusive); "" walks all.
            visit: Called with each logical name. Raise ``StopWalk`` to end
                the walk without error.
            cancel: Optional event aborting the walk once set.

        Returns:
            Number of objects visited.

        Raises:
            WalkCancelledError: If ``cancel`` was set.
        """
        ...

    @abstractmethod
    def sub_store(self, segment: str) -> ObjectStore:
        """Return a store rooted at ``segment`` under this store's base.

        The new store has the same extension, compression and overwrite flag.
        """
        ...

    def walk(
        self,
        prefix: str,
        visit: Visitor,
        *,
        cancel: threading.Event | None = None,
    ) -> int:
        """Visit every object under ``prefix``; see ``walk_from``."""
        return self.walk_from(prefix, "", visit, cancel=cancel)

    @traced_storage_operation("list")
    def list(self, prefix: str = "", limit: int = DEFAULT_LIST_LIMIT) -> list[str]:
        """Return up to ``limit`` object names under ``prefix``, in key order."""
        return list_names(self.walk, prefix, limit)

    @traced_storage_operation("push_local_file")
    def push_local_file(self, local_path: str | Path, name: str) -> None:
        """Upload a local staging file, then delete it.

        The file is removed only after the write succeeded; on failure it is
        left in place for retry or inspection.
        """
        path = Path(local_path)
        with path.open("rb") as f:
            self.write(name, f)
        path.unlink()
        logger.debug("Pushed local file: name=%s backend=%s", name, self.backend_name)

    def read_bytes(self, name: str) -> bytes:
        """Return the full decompressed body of ``name``."""
        with self.open(name) as reader:
            return reader.read()

    def write_bytes(self, name: str, data: bytes, *, overwrite: bool | None = None) -> bool:
        return self.write(name, data, overwrite=overwrite)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({str(self._location)!r}, extension={self._extension!r}, "
            f"compression={self._compression!r}, overwrite={self._overwrite!r})"
        )
