"""Docstring and decorator markers for final, deprecated and internal declarations.

Markers are tag lines inside a docstring::

    class Repository:
        \"\"\"Base repository.

        @final since 2.0, compose instead of inheriting.
        @internal
        \"\"\"

A tag starts a line (after indentation). The reason is the rest of that line
plus any following non-blank lines that are not tags, joined with spaces and
stripped of a trailing period.

Decorator equivalents are honoured too:

- ``typing.final`` sets ``__final__ = True``
- PEP 702 ``warnings.deprecated`` / ``typing_extensions.deprecated`` sets
  ``__deprecated__ = '<message>'``

Reasons are stored ready to splice after the keyword in a message: either
``''`` or a string starting with a separator (``' since 2.0'``, ``': use X'``).
"""

from __future__ import annotations

__all__ = [
    'Annotation',
    'METHOD_ANNOTATIONS',
    'decorator_annotations',
    'parse_docstring',
]

import enum
import inspect
import re
from collections.abc import Mapping, Set


class Annotation(enum.Enum):
    """Tagged variant for the three supported markers."""

    FINAL = 'final'
    DEPRECATED = 'deprecated'
    INTERNAL = 'internal'


# Methods can only be sealed or hidden; deprecating a method is out of reach
# of class-level verification.
METHOD_ANNOTATIONS: Set[Annotation] = frozenset({Annotation.FINAL, Annotation.INTERNAL})

_ALL_ANNOTATIONS: Set[Annotation] = frozenset(Annotation)

_TAG_RE = re.compile(r'@(\w+)(.*)')


def parse_docstring(
    doc: str | None,
    kinds: Set[Annotation] = _ALL_ANNOTATIONS,
) -> Mapping[Annotation, str]:
    """Extract marker reasons from a docstring.

    Args:
        doc: Raw docstring (``None`` for undocumented objects).
        kinds: Markers to look for. Other tags are treated as boundaries only.

    Returns:
        Mapping of found markers to their formatted reason. The first
        occurrence of a tag wins.
    """
    if not doc or '@' not in doc:
        return {}

    found: dict[Annotation, str] = {}
    lines = inspect.cleandoc(doc).splitlines()

    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped.startswith('@'):
            continue
        match = _TAG_RE.match(stripped)
        kind = _lookup(match.group(1)) if match else None
        if match is None or kind is None or kind not in kinds or kind in found:
            continue

        rest = match.group(2).lstrip(':').strip()
        parts = [rest] if rest else []
        for continuation in lines[index + 1 :]:
            text = continuation.strip()
            if not text or text.startswith('@'):
                break
            parts.append(text)

        reason = ' '.join(parts).rstrip().rstrip('.').rstrip()
        found[kind] = f' {reason}' if reason else ''

    return found


def decorator_annotations(obj: object) -> Mapping[Annotation, str]:
    """Read markers set by decorators directly on ``obj``.

    Only the object's own namespace is consulted for classes, so a subclass
    of a ``@typing.final`` class is not itself reported as final.
    """
    namespace: Mapping[str, object]
    if isinstance(obj, type):
        namespace = obj.__dict__
    else:
        namespace = getattr(obj, '__dict__', {})

    found: dict[Annotation, str] = {}
    if namespace.get('__final__') is True:
        found[Annotation.FINAL] = ''
    message = namespace.get('__deprecated__')
    if isinstance(message, str):
        message = message.strip().rstrip('.')
        found[Annotation.DEPRECATED] = f': {message}' if message else ''
    return found


def _lookup(tag: str) -> Annotation | None:
    try:
        return Annotation(tag)
    except ValueError:
        return None
