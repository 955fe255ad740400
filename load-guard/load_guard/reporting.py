"""Warning scopes used around module execution and advisory emission."""

from __future__ import annotations

__all__ = [
    'elevated_reporting',
    'emit_advisories',
]

import contextlib
import logging
import warnings
from collections.abc import Iterable, Iterator

from load_guard.errors import DeprecationAdvisory

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def elevated_reporting(categories: Iterable[type[Warning]]) -> Iterator[None]:
    """Show every warning of ``categories`` raised inside the block.

    Compile-time warnings (``SyntaxWarning`` for invalid escapes, say) are
    otherwise easy to lose behind default filters. The caller's filters are
    restored on every exit path, including exceptions.
    """
    with warnings.catch_warnings():
        for category in categories:
            warnings.simplefilter('always', category)
        yield


def emit_advisories(messages: Iterable[str], *, stacklevel: int = 2) -> int:
    """Emit each message as a ``DeprecationAdvisory``. Returns how many were emitted."""
    count = 0
    for message in messages:
        logger.debug('[CHECK] Advisory: %s', message)
        warnings.warn(message, DeprecationAdvisory, stacklevel=stacklevel + 1)
        count += 1
    return count
