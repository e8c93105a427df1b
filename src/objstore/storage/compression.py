"""Transparent stream compression for stored objects.

Supported schemes:
    "" / "none": bytes pass through unchanged
    "gzip":      RFC 1952 via the standard library
    "zstd":      Zstandard frames via the ``zstandard`` package

Writers never close the sink they wrap: the backend owns the sink and
commits the object when it closes it. Readers do close the raw stream they
wrap so provider connections are released with the reader.
"""

from __future__ import annotations

import gzip
import io
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import IO, Any, BinaryIO

import zstandard

from objstore.storage.errors import UnsupportedCompressionError

NONE = "none"
GZIP = "gzip"
ZSTD = "zstd"

SUPPORTED_SCHEMES = frozenset({"", NONE, GZIP, ZSTD})

COPY_CHUNK_SIZE = 1024 * 1024


def normalize_scheme(scheme: str | None) -> str:
    """Return the canonical name of ``scheme``.

    Raises:
        UnsupportedCompressionError: If no adapter handles the scheme.
    """
    value = (scheme or "").strip().lower()
    if value not in SUPPORTED_SCHEMES:
        raise UnsupportedCompressionError(value)
    return value or NONE


@contextmanager
def compressing_writer(sink: IO[bytes], scheme: str) -> Iterator[IO[bytes]]:
    """Yield a writable stream that compresses into ``sink``.

    The compressor is finalized when the block exits normally. ``sink`` is
    left open either way.
    """
    scheme = normalize_scheme(scheme)
    if scheme == NONE:
        yield sink
        return

    writer: Any
    if scheme == GZIP:
        writer = gzip.GzipFile(fileobj=sink, mode="wb")
    else:
        writer = zstandard.ZstdCompressor().stream_writer(sink, closefd=False)

    # on error the partial frame is abandoned along with the upload
    yield writer
    writer.close()


def compressed_copy(source: IO[bytes], sink: IO[bytes], scheme: str) -> int:
    """Copy ``source`` into ``sink`` through the compressor for ``scheme``.

    Returns:
        Number of uncompressed bytes read from ``source``.
    """
    total = 0
    with compressing_writer(sink, scheme) as writer:
        while True:
            chunk = source.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            writer.write(chunk)
            total += len(chunk)
    return total


class _ReadCloser(io.RawIOBase):
    """Readable stream that closes extra resources along with itself."""

    def __init__(self, reader: IO[bytes], on_close: list[Callable[[], None]]) -> None:
        super().__init__()
        self._reader = reader
        self._on_close = on_close

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        data = self._reader.read(len(buffer))
        n = len(data)
        buffer[:n] = data
        return n

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return self._reader.read()
        return self._reader.read(size)

    def readall(self) -> bytes:
        return self._reader.read()

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._reader.close()
        finally:
            try:
                for hook in self._on_close:
                    hook()
            finally:
                super().close()


def wrap_reader(reader: IO[bytes], on_close: Callable[[], None]) -> BinaryIO:
    """Return ``reader`` with ``on_close`` run after it is closed."""
    return _ReadCloser(reader, [on_close])  # type: ignore[return-value]


def decompressing_reader(raw: IO[bytes], scheme: str) -> BinaryIO:
    """Wrap ``raw`` so reads return decompressed bytes.

    Closing the returned stream closes ``raw``.
    """
    scheme = normalize_scheme(scheme)
    reader: IO[bytes]
    on_close: list[Callable[[], None]] = []
    if scheme == NONE:
        reader = raw
    elif scheme == GZIP:
        # GzipFile never closes a fileobj it was handed
        reader = gzip.GzipFile(fileobj=raw, mode="rb")
        on_close.append(raw.close)
    else:
        reader = zstandard.ZstdDecompressor().stream_reader(raw, closefd=True)
    return _ReadCloser(reader, on_close)  # type: ignore[return-value]
