"""objstore error types.

Typed exceptions shared by every backend. Provider failures that have no
counterpart here (network, permission, malformed request) are not wrapped:
they propagate as the provider SDK raised them.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        url: Base URL of the store involved (if applicable).
        name: Logical object name involved (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.url = url
        self.name = name

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"url={self.url}")
        if self.name:
            parts.append(f"name={self.name}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when an object does not exist in the store.

    Callers branch on this type to tell "absent" apart from "broken".
    """

    def __init__(
        self,
        message: str = "Object not found",
        *,
        url: str | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(message, url=url, name=name)


class PathTraversalError(ObjectStorageError):
    """Raised when a name would resolve outside a local store's root.

    Names like ``../x`` are cleaned into the key before this check, so only
    names that climb above the base directory trigger it.
    """

    def __init__(
        self,
        message: str = "Invalid name: path escapes store root",
        *,
        url: str | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(message, url=url, name=name)


class WalkCancelledError(ObjectStorageError):
    """Raised when a walk observes its cancellation event."""

    def __init__(
        self,
        message: str = "Walk cancelled",
        *,
        url: str | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(message, url=url, name=name)


class UnsupportedCompressionError(ObjectStorageError):
    """Raised for a compression scheme no adapter exists for."""

    def __init__(self, scheme: str) -> None:
        super().__init__(f"Unsupported compression scheme: {scheme!r}")
        self.scheme = scheme


class UnsupportedSchemeError(ObjectStorageError):
    """Raised when a store URL uses a scheme without a backend."""

    def __init__(self, scheme: str, *, url: str | None = None) -> None:
        super().__init__(f"Unsupported store scheme: {scheme!r}", url=url)
        self.scheme = scheme


class StorageBackendError(ObjectStorageError):
    """Raised when a backend cannot be constructed or used at all.

    Examples are a missing provider SDK or an unusable base location.
    Per-operation provider failures are not converted into this type.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        url: str | None = None,
        name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, url=url, name=name)
        self.cause = cause


class StopWalk(Exception):  # noqa: N818
    """Raised by a walk visitor to end enumeration early.

    Not a failure: the walk returns normally when it sees this.
    """
