"""Filename case verification for case-insensitive filesystems.

On a case-insensitive filesystem ``import acme.Models`` happily loads
``acme/models.py``. The import then breaks on the first case-sensitive
deployment. The helpers here compare the path a finder derived from the module
name with the path the file really has on disk.

Three filesystem behaviours are distinguished (``detect_case_check``):

    SENSITIVE:
        Wrong case means the file is not found; nothing to check.

    INSENSITIVE:
        ``os.path.realpath`` returns the on-disk case (Windows).

    INSENSITIVE_NON_NORMALIZING:
        ``os.path.realpath`` keeps whatever case it was given (macOS APFS/HFS+).
        The true case is recovered from directory listings, cached in
        ``DirectoryCaseCache``.
"""

from __future__ import annotations

__all__ = [
    'CaseCheck',
    'CaseMismatch',
    'DirectoryCaseCache',
    'detect_case_check',
    'find_case_mismatch',
]

import enum
import logging
import os
import sys
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class CaseCheck(enum.IntEnum):
    """Filesystem case behaviour. Falsy when no check is needed."""

    SENSITIVE = 0
    INSENSITIVE = 1
    INSENSITIVE_NON_NORMALIZING = 2


@dataclass(frozen=True)
class CaseMismatch:
    """Where the on-disk path diverges from the module name."""

    expected: str  # suffix as implied by the module name
    actual: str  # same suffix as found on disk
    directory: str  # real path leading up to the suffix


def detect_case_check(probe: str | None = None) -> CaseCheck:
    """Probe the filesystem holding ``probe`` (default: this file).

    The probe file name is looked up with its case swapped. Falls back to
    ``SENSITIVE`` (checks disabled) when the result is inconclusive.
    """
    if probe is None:
        probe = __file__ if os.path.exists(__file__) else os.getcwd()
    probe = os.path.abspath(probe)
    directory, name = os.path.split(probe)
    if not name:
        return CaseCheck.SENSITIVE

    swapped = name.lower() if name.upper() == name else name.upper()
    candidate = os.path.join(directory, swapped)

    if swapped == name or not os.path.exists(candidate):
        mode = CaseCheck.SENSITIVE
    elif os.path.realpath(candidate).endswith(name):
        mode = CaseCheck.INSENSITIVE
    elif sys.platform == 'darwin':
        mode = CaseCheck.INSENSITIVE_NON_NORMALIZING
    else:
        mode = CaseCheck.SENSITIVE

    logger.debug('[CASE] Filesystem probe on %s -> %s', probe, mode.name)
    return mode


def find_case_mismatch(fullname: str, file: str, real: str) -> CaseMismatch | None:
    """Compare the finder's path for ``fullname`` with the real on-disk path.

    Args:
        fullname: Dotted module name that was requested.
        file: Path the finder located (built from the module name).
        real: True path of the loaded file, case-normalised.

    Returns:
        The diverging suffix, or None when the suffix implied by the module
        name has the same case on disk (or cannot be aligned at all).

    The module name parts are aligned with the trailing segments of ``file``,
    right to left, while they match exactly. Only that matched suffix is
    compared against ``real``, so prefixes that differ in depth (symlinked or
    relocated source trees) never produce a mismatch on their own.
    """
    file = file.replace('/', os.sep)
    tail = file.split(os.sep)
    expected = _expected_segments(fullname, tail[-1])

    i = len(tail) - 1
    j = len(expected) - 1
    while i >= 0 and j >= 0 and tail[i] == expected[j]:
        i -= 1
        j -= 1

    matched = tail[i + 1 :]
    if not matched:
        return None

    suffix = os.sep + os.sep.join(matched)
    length = len(suffix)
    if len(real) < length:
        return None

    real_suffix = real[-length:]
    if real_suffix.lower() == suffix.lower() and real_suffix != suffix:
        return CaseMismatch(
            expected=suffix[1:],
            actual=real_suffix[1:],
            directory=real[: -length + 1],
        )
    return None


def _expected_segments(fullname: str, basename: str) -> list[str]:
    """Path segments a file for ``fullname`` should end with."""
    parts = fullname.split('.')
    stem, dot, extension = basename.partition('.')
    if stem == '__init__':
        return [*parts, basename]
    return [*parts[:-1], parts[-1] + dot + extension]


# =============================================================================
# Directory listing cache
# =============================================================================


@dataclass
class _Directory:
    """One directory: its true-case path and known file name variants."""

    path: str
    names: dict[str, str] = field(default_factory=dict)
    scanned: bool = False

    def lookup(self, name: str) -> str:
        if name in self.names:
            return self.names[name]
        key = name.lower()
        if key not in self.names and not self.scanned:
            self._scan()
        return self.names.get(key, name)

    def _scan(self) -> None:
        self.scanned = True
        try:
            entries = os.listdir(self.path)
        except OSError:
            # Missing or unreadable: callers keep the case they already have
            logger.debug('[CASE] Cannot list %s', self.path)
            return
        for entry in entries:
            self.names[entry] = entry
            self.names.setdefault(entry.lower(), entry)


class DirectoryCaseCache:
    """Recover true filename case from directory listings.

    Keys are lowercased directory paths; each directory is listed at most
    once. Grows for the lifetime of the process, never invalidated.
    """

    def __init__(self) -> None:
        self._directories: dict[str, _Directory] = {}

    def __len__(self) -> int:
        return len(self._directories)

    def resolve(self, path: str) -> str:
        """Return ``path`` with every segment in its on-disk case."""
        directory, name = os.path.split(path)
        if not name:
            return path
        entry = self._directory(directory)
        return os.path.join(entry.path, entry.lookup(name))

    def _directory(self, directory: str) -> _Directory:
        key = directory.lower()
        entry = self._directories.get(key)
        if entry is not None:
            return entry

        parent, name = os.path.split(directory)
        if not name:
            entry = _Directory(directory)
        else:
            parent_entry = self._directory(parent)
            entry = _Directory(os.path.join(parent_entry.path, parent_entry.lookup(name)))

        self._directories[key] = entry
        return entry
