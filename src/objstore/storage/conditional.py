"""Write-once policy shared by all backends.

When overwriting is disabled, a backend issues its write with the provider's
native "only if absent" precondition. Losing that race is not a failure: the
object already holds content for this name, so the write becomes a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

PreconditionClassifier = Callable[[BaseException], bool]


def conditional_write(
    perform: Callable[[], object],
    *,
    overwrite: bool,
    is_precondition_failure: PreconditionClassifier,
    key: str = "",
) -> bool:
    """Run a backend write under the write-once policy.

    Args:
        perform: Issues the write. Must apply the backend's create-if-absent
            precondition itself when ``overwrite`` is False.
        overwrite: Whether existing objects may be replaced.
        is_precondition_failure: Backend classifier for "object already
            exists" errors.
        key: Provider key, for logging only.

    Returns:
        True if an object was written, False if the write was skipped because
        the object already existed.
    """
    if overwrite:
        perform()
        return True

    try:
        perform()
    except Exception as e:
        if not is_precondition_failure(e):
            raise
        logger.debug("Write skipped, object already exists: key=%s", key)
        return False
    return True
