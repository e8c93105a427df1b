"""Store locations and object name/key/URL derivation.

A store is rooted at a base location such as ``gs://bucket/root``. Logical
object names are turned into provider keys by joining the base path with
``name + extension``; keys observed while listing are mapped back to names
by stripping the same decorations.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse


def clean_join(*parts: str) -> str:
    """Join path segments with ``/`` and collapse dot segments.

    Empty segments are ignored and an all-empty join yields ``""``. Trailing
    separators are not preserved.
    """
    non_empty = [p for p in parts if p]
    if not non_empty:
        return ""
    joined = posixpath.normpath("/".join(non_empty))
    # normpath keeps a POSIX "//" root; a key never has one
    if joined.startswith("//"):
        joined = "/" + joined.lstrip("/")
    return joined


@dataclass(frozen=True)
class StoreLocation:
    """Structured base location of a store.

    Attributes:
        scheme: URL scheme selecting the backend (``gs``, ``s3``, ``file``).
        host: Bucket name for cloud backends, empty for ``file``.
        path: Path prefix under the bucket (or absolute directory for ``file``).
    """

    scheme: str
    host: str
    path: str

    @classmethod
    def parse(cls, url: str) -> StoreLocation:
        """Parse a store URL.

        A value without a scheme is taken as a local directory and resolved
        to an absolute ``file://`` location. Trailing separators on the path
        are dropped.
        """
        if not url:
            raise ValueError("store url is required")
        parsed = urlparse(url)
        if not parsed.scheme or len(parsed.scheme) == 1:
            # bare path, or a Windows drive letter mistaken for a scheme
            return cls(scheme="file", host="", path=Path(url).resolve().as_posix())
        path = parsed.path
        if len(path) > 1:
            # "gs://b/root/" and "gs://b/root" name the same base; "/" stays a root
            path = path.rstrip("/") or "/"
        return cls(scheme=parsed.scheme, host=parsed.netloc, path=path)

    @property
    def key_prefix(self) -> str:
        """Return the path as used inside provider keys (no leading ``/``)."""
        return self.path.strip("/")

    def join(self, segment: str) -> StoreLocation:
        """Return a new location with ``segment`` joined onto the path."""
        path = clean_join(self.path, segment)
        if self.host and path and not path.startswith("/"):
            path = "/" + path
        return StoreLocation(scheme=self.scheme, host=self.host, path=path)

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host}{self.path}"


class ObjectNamer:
    """Derives keys and URLs from logical names for one base location."""

    def __init__(self, location: StoreLocation, extension: str = "") -> None:
        self._location = location
        self._extension = extension

    @property
    def extension(self) -> str:
        return self._extension

    def with_extension(self, name: str) -> str:
        return f"{name}{self._extension}"

    def object_path(self, name: str) -> str:
        """Return the provider key for ``name``."""
        return clean_join(self._location.key_prefix, self.with_extension(name))

    def object_url(self, name: str) -> str:
        """Return the externally dereferenceable URL for ``name``."""
        base = str(self._location).rstrip("/")
        return f"{base}/{self.with_extension(name).lstrip('/')}"

    def key_to_name(self, key: str) -> str:
        """Map a key seen in this store's listing back to its logical name.

        Only meaningful for keys produced under this store's base location.
        """
        stripped = key.removesuffix(self._extension) if self._extension else key
        return stripped.removeprefix(self._location.key_prefix + "/")
