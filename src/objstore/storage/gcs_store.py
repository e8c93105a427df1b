"""Google Cloud Storage backend.

Uses google-cloud-storage with Application Default Credentials. Objects are
addressed as ``gs://bucket/base/path/name.ext``.

Write-once writes use ``if_generation_match=0``; GCS answers an existing
object with HTTP 412, which the write policy turns into a no-op.

Environment Variables:
    OBJSTORE_GCS_PROJECT: Project for the default client (usually inferred)
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterator
from typing import IO, Any, BinaryIO

from google.api_core import exceptions as google_exceptions
from google.cloud import storage

from objstore.storage.compression import compressed_copy, decompressing_reader, wrap_reader
from objstore.storage.conditional import conditional_write
from objstore.storage.errors import ObjectNotFoundError, StorageBackendError
from objstore.storage.location import StoreLocation
from objstore.storage.object_store import ObjectStore, as_stream
from objstore.storage.tracing import traced_storage_operation
from objstore.storage.walk import Visitor, query_prefix, start_offset, walk_keys

logger = logging.getLogger(__name__)

OBJSTORE_GCS_PROJECT_ENV = "OBJSTORE_GCS_PROJECT"

CONTENT_TYPE = "application/octet-stream"
CACHE_CONTROL = "public, max-age=86400"

_HTTP_PRECONDITION_FAILED = 412


def is_precondition_failure(exc: BaseException) -> bool:
    """Return True if ``exc`` is GCS reporting a failed generation precondition.

    Resumable uploads can surface the 412 either as an api_core error or as
    the raw upload response, so both shapes are checked.
    """
    if isinstance(exc, google_exceptions.PreconditionFailed):
        return True
    if getattr(exc, "code", None) == _HTTP_PRECONDITION_FAILED:
        return True
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None) == _HTTP_PRECONDITION_FAILED


def default_client(project: str | None = None) -> storage.Client:
    """Create a GCS client from Application Default Credentials."""
    return storage.Client(project=project or os.environ.get(OBJSTORE_GCS_PROJECT_ENV) or None)


class GCSObjectStore(ObjectStore):
    """Google Cloud Storage object store.

    The client is shared with sub-stores; google-cloud-storage clients are
    safe to use from several threads.
    """

    def __init__(
        self,
        location: StoreLocation | str,
        *,
        extension: str = "",
        compression: str = "",
        overwrite: bool = False,
        client: Any = None,
        project: str | None = None,
    ) -> None:
        """Initialize GCS storage.

        Args:
            location: ``gs://bucket[/path]`` base location.
            extension: Suffix appended to every object name.
            compression: Compression scheme for object bodies.
            overwrite: Whether writes may replace existing objects.
            client: Optional pre-built ``google.cloud.storage.Client``.
            project: GCP project for the default client.
        """
        if isinstance(location, str):
            location = StoreLocation.parse(location)
        if location.scheme != "gs" or not location.host:
            raise StorageBackendError(
                "GCSObjectStore requires a gs://bucket location",
                url=str(location),
            )
        super().__init__(
            location,
            extension=extension,
            compression=compression,
            overwrite=overwrite,
        )
        self._client = client if client is not None else default_client(project)
        self._bucket = self._client.bucket(location.host)

        logger.debug("GCSObjectStore initialized: %s", location)

    @property
    def backend_name(self) -> str:
        return "gcs"

    @property
    def client(self) -> Any:
        return self._client

    @traced_storage_operation("write")
    def write(
        self,
        name: str,
        data: IO[bytes] | bytes,
        *,
        overwrite: bool | None = None,
    ) -> bool:
        """Upload an object, streaming through the compressor."""
        key = self.object_path(name)
        overwrite = self._effective_overwrite(overwrite)
        blob = self._bucket.blob(key)
        blob.cache_control = CACHE_CONTROL

        upload_kwargs: dict[str, Any] = {"content_type": CONTENT_TYPE}
        if not overwrite:
            upload_kwargs["if_generation_match"] = 0

        def upload() -> None:
            # ignore_flush: compressors flush the sink mid-stream
            sink = blob.open("wb", ignore_flush=True, **upload_kwargs)
            compressed_copy(as_stream(data), sink, self.compression)
            # the object is committed by close(); an unclosed upload is discarded
            sink.close()

        written = conditional_write(
            upload,
            overwrite=overwrite,
            is_precondition_failure=is_precondition_failure,
            key=key,
        )
        if written:
            logger.debug("Stored object: backend=gcs key=%s", key)
        return written

    @traced_storage_operation("open")
    def open(self, name: str) -> BinaryIO:
        """Open an object for streaming reads."""
        key = self.object_path(name)
        logger.debug("Opening object: name=%s", self._namer.with_extension(name))

        # get_blob pins the generation so the reader never mixes versions
        blob = self._bucket.get_blob(key)
        if blob is None:
            raise ObjectNotFoundError(url=str(self.base_url), name=name)

        reader = decompressing_reader(blob.open("rb"), self.compression)
        if logger.isEnabledFor(logging.DEBUG):
            reader = wrap_reader(
                reader,
                lambda: logger.debug("Closing object: name=%s", self._namer.with_extension(name)),
            )
        return reader

    @traced_storage_operation("delete")
    def delete(self, name: str) -> None:
        key = self.object_path(name)
        try:
            self._bucket.blob(key).delete()
        except google_exceptions.NotFound as e:
            raise ObjectNotFoundError(url=str(self.base_url), name=name) from e
        logger.debug("Deleted object: backend=gcs key=%s", key)

    @traced_storage_operation("exists")
    def exists(self, name: str) -> bool:
        key = self.object_path(name)
        try:
            return self._bucket.get_blob(key) is not None
        except google_exceptions.NotFound:
            return False

    def _iter_keys(self, query: str, offset: str | None) -> Iterator[str]:
        blobs = self._client.list_blobs(
            self.base_url.host,
            prefix=query or None,
            start_offset=offset,
        )
        for blob in blobs:
            yield blob.name

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
            self._iter_keys(query, offset),
            visit,
            to_name=self.key_to_name,
            offset=offset,
            cancel=cancel,
        )

    def sub_store(self, segment: str) -> GCSObjectStore:
        return GCSObjectStore(
            self.base_url.join(segment),
            extension=self.extension,
            compression=self.compression,
            overwrite=self.overwrite,
            client=self._client,
        )
