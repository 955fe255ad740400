"""load-guard - import wrapper verifying module integrity and declaration markers."""

from __future__ import annotations

from load_guard.annotations import Annotation
from load_guard.case_check import CaseCheck
from load_guard.descriptors import ClassDescriptor, ClassKind, TypeDescriptor
from load_guard.errors import ClassIntegrityError, DeprecationAdvisory
from load_guard.loader import DebugClassLoader
from load_guard.registry import VerificationRegistry, default_registry
from load_guard.settings import LoaderSettings, load_settings

__all__ = [
    'Annotation',
    'CaseCheck',
    'ClassDescriptor',
    'ClassIntegrityError',
    'ClassKind',
    'DebugClassLoader',
    'DeprecationAdvisory',
    'LoaderSettings',
    'TypeDescriptor',
    'VerificationRegistry',
    'default_registry',
    'load_settings',
]
