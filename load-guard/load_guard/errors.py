"""Failure and advisory types raised by the verifying loader.

Two kinds of findings, handled very differently:

    ClassIntegrityError (fatal):
        The import mapping is broken (name typo, case mismatch, a file that
        does not define the module it was found for). Raised synchronously
        from the load; the import fails.

    DeprecationAdvisory (informational):
        Collected from ``@final`` / ``@deprecated`` / ``@internal`` markers.
        Emitted through ``warnings.warn`` and never affects control flow.
"""

from __future__ import annotations

__all__ = [
    'ClassIntegrityError',
    'DeprecationAdvisory',
]


class ClassIntegrityError(RuntimeError):
    """A located module or class does not match the name it was requested under."""


class DeprecationAdvisory(DeprecationWarning):
    """Use of a final, deprecated or internal declaration across a vendor boundary."""
