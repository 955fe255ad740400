"""Shared fixtures for load-guard tests.

Verification state is process-wide by default, so every test gets its own
``VerificationRegistry`` and its own module sandbox: a temporary directory on
``sys.path`` whose modules are dropped from ``sys.modules`` afterwards.
"""

from __future__ import annotations

import importlib
import sys
import textwrap
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import pytest

from load_guard import registry as registry_module
from load_guard.case_check import CaseCheck
from load_guard.registry import VerificationRegistry


@dataclass
class ModuleSandbox:
    """Writes importable modules under a temporary ``sys.path`` root."""

    root: Path

    def write(self, relative: str, source: str = '') -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source))
        importlib.invalidate_caches()
        return path


@pytest.fixture
def registry() -> VerificationRegistry:
    """Fresh caches; case checks off unless a test forces a mode."""
    return VerificationRegistry(case_check=CaseCheck.SENSITIVE)


@pytest.fixture
def sandbox(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[ModuleSandbox]:
    root = tmp_path / 'site'
    root.mkdir()
    monkeypatch.syspath_prepend(str(root))
    monkeypatch.setattr(sys, 'meta_path', list(sys.meta_path))
    before = set(sys.modules)
    yield ModuleSandbox(root)
    for name in set(sys.modules) - before:
        del sys.modules[name]


@pytest.fixture
def fresh_default_registry(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate code paths that use ``default_registry()``."""
    monkeypatch.setattr(registry_module, '_default', VerificationRegistry(case_check=CaseCheck.SENSITIVE))
