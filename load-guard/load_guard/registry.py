"""Process-scoped verification state shared by every loader wrapper.

All caches live on one ``VerificationRegistry`` instead of module globals, so
tests (and embedders) can hand a fresh registry to a wrapper while production
code shares ``default_registry()``.

Every field is lazily initialised and only ever grows. Not thread-safe: class
loading is assumed to happen on one thread at a time.
"""

from __future__ import annotations

__all__ = [
    'MethodAnnotation',
    'VerificationRegistry',
    'default_registry',
]

import logging
from collections.abc import Mapping
from typing import TypeAlias

from load_guard.annotations import METHOD_ANNOTATIONS, Annotation
from load_guard.case_check import CaseCheck, DirectoryCaseCache, detect_case_check

logger = logging.getLogger(__name__)

# (declaring class, formatted reason)
MethodAnnotation: TypeAlias = tuple[str, str]


class VerificationRegistry:
    """Caches of verified names and collected annotations.

    Args:
        case_check: Force a filesystem case mode instead of probing it.
    """

    def __init__(self, case_check: CaseCheck | None = None) -> None:
        self.checked_modules: set[str] = set()
        self.checked_classes: set[str] = set()
        self._annotations: dict[Annotation, dict[str, str]] = {kind: {} for kind in Annotation}
        self._method_annotations: dict[Annotation, dict[str, dict[str, MethodAnnotation]]] = {
            kind: {} for kind in METHOD_ANNOTATIONS
        }
        self._case_check = case_check
        self._directories: DirectoryCaseCache | None = None

    # -- Filesystem --

    @property
    def case_check(self) -> CaseCheck:
        """Filesystem case mode, probed on first access."""
        if self._case_check is None:
            self._case_check = detect_case_check()
        return self._case_check

    @property
    def directories(self) -> DirectoryCaseCache:
        if self._directories is None:
            self._directories = DirectoryCaseCache()
        return self._directories

    # -- Class annotations --

    def annotate(self, kind: Annotation, class_name: str, reason: str) -> None:
        self._annotations[kind][class_name] = reason

    def annotation(self, kind: Annotation, class_name: str) -> str | None:
        """Formatted reason if ``class_name`` carries ``kind``, else None."""
        return self._annotations[kind].get(class_name)

    # -- Method annotations --

    def method_annotations(self, kind: Annotation, class_name: str) -> Mapping[str, MethodAnnotation]:
        return self._method_annotations[kind].get(class_name, {})

    def set_method_annotations(
        self,
        kind: Annotation,
        class_name: str,
        methods: Mapping[str, MethodAnnotation],
    ) -> None:
        self._method_annotations[kind][class_name] = dict(methods)

    def annotate_method(self, kind: Annotation, class_name: str, method: str, reason: str) -> None:
        self._method_annotations[kind].setdefault(class_name, {})[method] = (class_name, reason)


_default: VerificationRegistry | None = None


def default_registry() -> VerificationRegistry:
    """The registry shared by all wrappers that were not given one."""
    global _default
    if _default is None:
        logger.debug('[LOAD] Creating process-wide verification registry')
        _default = VerificationRegistry()
    return _default
