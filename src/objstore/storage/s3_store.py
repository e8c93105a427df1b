"""AWS S3 backend (also S3-compatible services such as MinIO).

Objects are addressed as ``s3://bucket/base/path/name.ext``. Credentials and
region come from the standard boto3 chain unless given explicitly.

Write-once writes send ``If-None-Match: *``; S3 answers an existing key with
HTTP 412 PreconditionFailed. A 409 ConditionalRequestConflict means a
concurrent write raced this one and is reported to the caller.

Environment Variables:
    OBJSTORE_S3_ENDPOINT_URL: Endpoint override for S3-compatible services
    OBJSTORE_S3_REGION: Region for the default client
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from typing import IO, Any, BinaryIO

import boto3
from botocore.exceptions import ClientError

from objstore.storage.compression import compressed_copy, decompressing_reader, wrap_reader
from objstore.storage.conditional import conditional_write
from objstore.storage.errors import ObjectNotFoundError, StorageBackendError
from objstore.storage.location import StoreLocation
from objstore.storage.object_store import ObjectStore, as_stream
from objstore.storage.tracing import traced_storage_operation
from objstore.storage.walk import Visitor, query_prefix, start_offset, walk_keys

logger = logging.getLogger(__name__)

OBJSTORE_S3_ENDPOINT_URL_ENV = "OBJSTORE_S3_ENDPOINT_URL"
OBJSTORE_S3_REGION_ENV = "OBJSTORE_S3_REGION"

CONTENT_TYPE = "application/octet-stream"

# compressed bodies up to this size are staged in memory before upload
SPOOL_MAX_SIZE = 8 * 1024 * 1024

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(exc: BaseException) -> str:
    response = getattr(exc, "response", None) or {}
    error = response.get("Error") or {}
    return str(error.get("Code") or "")


def _http_status(exc: BaseException) -> int | None:
    response = getattr(exc, "response", None) or {}
    metadata = response.get("ResponseMetadata") or {}
    return metadata.get("HTTPStatusCode")


def is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, ClientError) and _error_code(exc) in _NOT_FOUND_CODES


def is_precondition_failure(exc: BaseException) -> bool:
    """Return True if ``exc`` is S3 refusing a write because the key exists."""
    if not isinstance(exc, ClientError):
        return False
    return _error_code(exc) == "PreconditionFailed" or _http_status(exc) == 412


def start_after(offset: str | None) -> str | None:
    """Return a ``StartAfter`` value that lists ``offset`` itself.

    ``StartAfter`` is exclusive; any proper prefix of ``offset`` sorts before
    it, and the walk engine drops the few keys in between.
    """
    if not offset or len(offset) < 2:
        return None
    return offset[:-1]


def default_client(
    *,
    endpoint_url: str | None = None,
    region: str | None = None,
) -> Any:
    """Create a boto3 S3 client from the default credential chain."""
    kwargs: dict[str, Any] = {}
    endpoint_url = endpoint_url or os.environ.get(OBJSTORE_S3_ENDPOINT_URL_ENV)
    region = region or os.environ.get(OBJSTORE_S3_REGION_ENV)
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    if region:
        kwargs["region_name"] = region
    return boto3.client("s3", **kwargs)


class S3ObjectStore(ObjectStore):
    """S3 object store.

    boto3 clients are thread-safe and shared with sub-stores.
    """

    def __init__(
        self,
        location: StoreLocation | str,
        *,
        extension: str = "",
        compression: str = "",
        overwrite: bool = False,
        client: Any = None,
        endpoint_url: str | None = None,
        region: str | None = None,
    ) -> None:
        """Initialize S3 storage.

        Args:
            location: ``s3://bucket[/path]`` base location.
            extension: Suffix appended to every object name.
            compression: Compression scheme for object bodies.
            overwrite: Whether writes may replace existing objects.
            client: Optional pre-built boto3 S3 client.
            endpoint_url: Endpoint for the default client.
            region: Region for the default client.
        """
        if isinstance(location, str):
            location = StoreLocation.parse(location)
        if location.scheme != "s3" or not location.host:
            raise StorageBackendError(
                "S3ObjectStore requires an s3://bucket location",
                url=str(location),
            )
        super().__init__(
            location,
            extension=extension,
            compression=compression,
            overwrite=overwrite,
        )
        if client is None:
            client = default_client(endpoint_url=endpoint_url, region=region)
        self._client = client
        self._bucket = location.host

        logger.debug("S3ObjectStore initialized: %s", location)

    @property
    def backend_name(self) -> str:
        return "s3"

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
        """Upload an object.

        The compressed body is staged (in memory, spilling to disk) so the
        upload carries a known length.
        """
        key = self.object_path(name)
        overwrite = self._effective_overwrite(overwrite)

        put_kwargs: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "ContentType": CONTENT_TYPE,
        }
        if not overwrite:
            put_kwargs["IfNoneMatch"] = "*"

        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as body:
            compressed_copy(as_stream(data), body, self.compression)
            body.seek(0)
            written = conditional_write(
                lambda: self._client.put_object(Body=body, **put_kwargs),
                overwrite=overwrite,
                is_precondition_failure=is_precondition_failure,
                key=key,
            )

        if written:
            logger.debug("Stored object: backend=s3 key=%s", key)
        return written

    @traced_storage_operation("open")
    def open(self, name: str) -> BinaryIO:
        """Open an object for streaming reads."""
        key = self.object_path(name)
        logger.debug("Opening object: name=%s", self._namer.with_extension(name))
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                raise ObjectNotFoundError(url=str(self.base_url), name=name) from e
            raise

        reader = decompressing_reader(response["Body"], self.compression)
        if logger.isEnabledFor(logging.DEBUG):
            reader = wrap_reader(
                reader,
                lambda: logger.debug("Closing object: name=%s", self._namer.with_extension(name)),
            )
        return reader

    @traced_storage_operation("delete")
    def delete(self, name: str) -> None:
        """Delete an object.

        S3 deletes are silent for missing keys, so existence is checked first.
        """
        key = self.object_path(name)
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                raise ObjectNotFoundError(url=str(self.base_url), name=name) from e
            raise
        self._client.delete_object(Bucket=self._bucket, Key=key)
        logger.debug("Deleted object: backend=s3 key=%s", key)

    @traced_storage_operation("exists")
    def exists(self, name: str) -> bool:
        key = self.object_path(name)
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise
        return True

    def _iter_keys(self, query: str, offset: str | None) -> Iterator[str]:
        params: dict[str, Any] = {"Bucket": self._bucket, "Prefix": query}
        after = start_after(offset)
        if after:
            params["StartAfter"] = after

        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(**params):
            for obj in page.get("Contents", []) or []:
                key = obj.get("Key")
                if key:
                    yield key

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

    def sub_store(self, segment: str) -> S3ObjectStore:
        return S3ObjectStore(
            self.base_url.join(segment),
            extension=self.extension,
            compression=self.compression,
            overwrite=self.overwrite,
            client=self._client,
        )
