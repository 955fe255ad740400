"""Process-edge error handling for the ``load-guard`` command.

Verification failures are programmer or environment defects; inside the
library they always propagate. The command turns them into a readable report
and an exit code at one explicit edge::

    boundary = ErrorBoundary(exit_code=1)

    @boundary.handler(ClassIntegrityError)
    def handle_integrity(exc: ClassIntegrityError) -> None:
        console.print(Panel(str(exc), title='Integrity error'))

    with boundary:
        importlib.import_module(name)

Handlers are matched by MRO via ``functools.singledispatch``. Exceptions
without a handler get their traceback printed to stderr. KeyboardInterrupt,
SystemExit and GeneratorExit are never caught.
"""

from __future__ import annotations

__all__ = [
    'ErrorBoundary',
]

import sys
import traceback
from collections.abc import Callable
from functools import singledispatch
from types import TracebackType
from typing import Self


class ErrorBoundary:
    """Dispatch exceptions raised inside ``with boundary:`` to registered handlers.

    Args:
        exit_code: Exit code after handling. ``None`` suppresses and continues.
    """

    def __init__(self, *, exit_code: int | None = 1) -> None:
        self._dispatch = singledispatch(_print_traceback)
        self._exit_code = exit_code

    def handler(self, exc_type: type[Exception]) -> Callable[[Callable[..., None]], Callable[..., None]]:
        """Register a handler for ``exc_type`` and its subclasses."""
        return self._dispatch.register(exc_type)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        if not isinstance(exc_value, Exception):
            return False

        try:
            self._dispatch(exc_value)
        except Exception:
            # The original error is still reported when its handler fails
            _print_traceback(exc_value)

        if self._exit_code is not None:
            sys.exit(self._exit_code)
        return True


def _print_traceback(exc: Exception) -> None:
    traceback.print_exception(exc, file=sys.stderr)
