"""Prefix-scoped, resumable enumeration of stored objects.

Backends supply a lazy iterator of provider keys in native (lexicographic)
order, already narrowed to a listing prefix and, where the provider
supports it, lower-bounded by a start offset. This module turns those keys
into logical names and drives the caller's visitor.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from objstore.storage.errors import StopWalk, WalkCancelledError
from objstore.storage.location import clean_join

logger = logging.getLogger(__name__)

Visitor = Callable[[str], object]

DEFAULT_LIST_LIMIT = 1000


def query_prefix(key_prefix: str, prefix: str = "") -> str:
    """Return the provider listing prefix for ``prefix`` under a store base.

    The store base always ends the result with a separator so sibling
    directories sharing a name prefix are excluded. A trailing separator on
    ``prefix`` is kept for the same reason.
    """
    query = f"{key_prefix}/" if key_prefix else ""
    if prefix:
        query = clean_join(query, prefix)
        if prefix.endswith("/"):
            query += "/"
    return query


def start_offset(query: str, starting_point: str = "") -> str | None:
    """Return the first key a resumed walk may visit, or None."""
    if not starting_point:
        return None
    return clean_join(query, starting_point)


def walk_keys(
    keys: Iterable[str],
    visit: Visitor,
    *,
    to_name: Callable[[str], str],
    offset: str | None = None,
    cancel: threading.Event | None = None,
) -> int:
    """Visit the logical name of every key, in order.

    Args:
        keys: Provider keys in native order. Closed on every exit path when
            the iterator supports ``close()``.
        visit: Called once per object, sequentially. Raising ``StopWalk``
            ends the walk without error; any other exception propagates.
        to_name: Maps a key to its logical name.
        offset: Keys sorting before this are skipped.
        cancel: Optional event; once set, the walk aborts.

    Returns:
        Number of visitor calls made.

    Raises:
        WalkCancelledError: If ``cancel`` was set during the walk.
    """
    visited = 0
    iterator = iter(keys)
    try:
        for key in iterator:
            if cancel is not None and cancel.is_set():
                raise WalkCancelledError()
            if offset is not None and key < offset:
                continue
            visited += 1
            try:
                visit(to_name(key))
            except StopWalk:
                logger.debug("Walk stopped by visitor after %d objects", visited)
                return visited
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
    return visited


def list_names(
    walk: Callable[[str, Visitor], object],
    prefix: str = "",
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[str]:
    """Collect up to ``limit`` names under ``prefix`` using ``walk``."""
    names: list[str] = []
    if limit <= 0:
        return names

    def collect(name: str) -> None:
        names.append(name)
        if len(names) >= limit:
            raise StopWalk()

    walk(prefix, collect)
    return names
