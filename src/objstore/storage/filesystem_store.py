"""objstore local filesystem backend.

Stores each object as one file under a base directory addressed as
``file:///abs/dir``. Used for development, tests and single-host
deployments:
- Objects are staged in a temp file beside the target, then published
  atomically (``os.replace`` to overwrite, ``os.link`` for write-once)
- Names that climb out of the base directory are rejected
- Listing is a sorted scan, giving the same key order as cloud providers

Environment Variables:
    OBJSTORE_FILESYSTEM_BASE_DIR: Default base directory when no location is
        given (default: tempfile.gettempdir() / objstore)
"""

from __future__ import annotations

import logging
import os
import posixpath
import stat
import tempfile
import threading
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import IO, BinaryIO

from objstore.storage.compression import compressed_copy, decompressing_reader, wrap_reader
from objstore.storage.conditional import conditional_write
from objstore.storage.errors import (
    ObjectNotFoundError,
    PathTraversalError,
    StorageBackendError,
)
from objstore.storage.location import StoreLocation
from objstore.storage.object_store import ObjectStore, as_stream
from objstore.storage.tracing import traced_storage_operation
from objstore.storage.walk import Visitor, query_prefix, start_offset, walk_keys

logger = logging.getLogger(__name__)

OBJSTORE_FILESYSTEM_BASE_DIR_ENV = "OBJSTORE_FILESYSTEM_BASE_DIR"

_TMP_PREFIX = ".objstore-"
_TMP_SUFFIX = ".tmp"


def _is_staging_file(filename: str) -> bool:
    return filename.startswith(_TMP_PREFIX) and filename.endswith(_TMP_SUFFIX)


def _is_precondition_failure(exc: BaseException) -> bool:
    return isinstance(exc, FileExistsError)


def default_base_dir() -> Path:
    """Return the base directory used when a store is built without one."""
    configured = os.environ.get(OBJSTORE_FILESYSTEM_BASE_DIR_ENV)
    if configured:
        return Path(configured)
    return Path(tempfile.gettempdir()) / "objstore"


class FilesystemObjectStore(ObjectStore):
    """Filesystem-based object store.

    Objects live at ``{base_dir}/{name}{extension}``. Keys are the absolute
    file path without its leading ``/``, matching how cloud keys omit the
    bucket.
    """

    def __init__(
        self,
        location: StoreLocation | str | None = None,
        *,
        extension: str = "",
        compression: str = "",
        overwrite: bool = False,
    ) -> None:
        """Initialize filesystem storage.

        Args:
            location: ``file://`` URL, plain directory path, or None for
                OBJSTORE_FILESYSTEM_BASE_DIR / the OS temp directory.
            extension: Suffix appended to every object name.
            compression: Compression scheme for object bodies.
            overwrite: Whether writes may replace existing objects.
        """
        if location is None:
            location = str(default_base_dir())
        if isinstance(location, str):
            location = StoreLocation.parse(location)
        if location.scheme != "file":
            raise StorageBackendError(
                f"FilesystemObjectStore requires a file:// location, got {location.scheme}://",
                url=str(location),
            )
        super().__init__(
            location,
            extension=extension,
            compression=compression,
            overwrite=overwrite,
        )
        self._base_dir = Path(location.path or "/")
        logger.debug("FilesystemObjectStore initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def _key_path(self, key: str) -> Path:
        return Path("/" + key)

    def _path_key(self, path: Path) -> str:
        return path.as_posix().lstrip("/")

    def _object_file(self, name: str) -> Path:
        """Return the file backing ``name``, refusing paths outside the base."""
        path = self._key_path(self.object_path(name))
        try:
            path.resolve().relative_to(self._base_dir.resolve())
        except ValueError as e:
            raise PathTraversalError(url=str(self.base_url), name=name) from e
        return path

    @traced_storage_operation("write")
    def write(
        self,
        name: str,
        data: IO[bytes] | bytes,
        *,
        overwrite: bool | None = None,
    ) -> bool:
        """Store an object."""
        overwrite = self._effective_overwrite(overwrite)
        target = self._object_file(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = target.parent / f"{_TMP_PREFIX}{target.name}.{uuid.uuid4().hex}{_TMP_SUFFIX}"

        def publish() -> None:
            if overwrite:
                os.replace(staging, target)
            else:
                # link() refuses an existing target, giving create-if-absent
                os.link(staging, target)

        try:
            with staging.open("wb") as sink:
                compressed_copy(as_stream(data), sink, self.compression)
            written = conditional_write(
                publish,
                overwrite=overwrite,
                is_precondition_failure=_is_precondition_failure,
                key=self.object_path(name),
            )
        finally:
            try:
                staging.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove staging file %s: %s", staging.name, e)

        if written:
            logger.debug("Stored object: backend=filesystem name=%s", name)
        return written

    @traced_storage_operation("open")
    def open(self, name: str) -> BinaryIO:
        """Open an object for reading."""
        path = self._object_file(name)
        logger.debug("Opening object: name=%s", self._namer.with_extension(name))
        try:
            raw = path.open("rb")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as e:
            raise ObjectNotFoundError(url=str(self.base_url), name=name) from e

        reader = decompressing_reader(raw, self.compression)
        if logger.isEnabledFor(logging.DEBUG):
            reader = wrap_reader(
                reader,
                lambda: logger.debug("Closing object: name=%s", self._namer.with_extension(name)),
            )
        return reader

    @traced_storage_operation("delete")
    def delete(self, name: str) -> None:
        """Delete an object."""
        path = self._object_file(name)
        if path.is_dir():
            # a directory only holds other objects
            raise ObjectNotFoundError(url=str(self.base_url), name=name)
        try:
            path.unlink()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as e:
            raise ObjectNotFoundError(url=str(self.base_url), name=name) from e
        logger.debug("Deleted object: backend=filesystem name=%s", name)

    @traced_storage_operation("exists")
    def exists(self, name: str) -> bool:
        """Check whether an object exists."""
        path = self._object_file(name)
        try:
            st = path.stat()
        except (FileNotFoundError, NotADirectoryError):
            return False
        return stat.S_ISREG(st.st_mode)

    def _iter_keys(self, query: str) -> Iterator[str]:
        """Yield keys starting with ``query`` in lexicographic order."""
        directory = query if query.endswith("/") else posixpath.dirname(query)
        root = self._key_path(directory)
        if not root.is_dir():
            return

        keys: list[str] = []
        for dirpath, _dirnames, filenames in os.walk(root):
            for filename in filenames:
                if _is_staging_file(filename):
                    continue
                key = self._path_key(Path(dirpath) / filename)
                if key.startswith(query):
                    keys.append(key)
        keys.sort()
        yield from keys

    @traced_storage_operation("walk_from")
    def walk_from(
        self,
        prefix: str,
        starting_point: str,
        visit: Visitor,
        *,
        cancel: threading.Event | None = None,
    ) -> int:
        """Visit every object under ``prefix`` in key order."""
        query = query_prefix(self.base_url.key_prefix, prefix)
        offset = start_offset(query, starting_point)
        return walk_keys(
            self._iter_keys(query),
            visit,
            to_name=self.key_to_name,
            offset=offset,
            cancel=cancel,
        )

    def sub_store(self, segment: str) -> FilesystemObjectStore:
        """Return a store rooted at ``segment`` under this store."""
        return FilesystemObjectStore(
            self.base_url.join(segment),
            extension=self.extension,
            compression=self.compression,
            overwrite=self.overwrite,
        )
