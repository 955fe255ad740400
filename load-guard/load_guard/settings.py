"""Loader configuration schema.

Settings are read from JSON, looked up in this order:

1. explicit path passed to ``load_settings``
2. ``$LOAD_GUARD_CONFIG``
3. ``./load-guard.json``

A missing file means defaults. An existing but invalid file is an error.
"""

from __future__ import annotations

import builtins
import keyword
import logging
import os
from pathlib import Path
from typing import Literal

import pydantic

__all__ = [
    'CONFIG_ENV_VAR',
    'DEFAULT_CONFIG_NAME',
    'LoaderSettings',
    'StrictModel',
    'load_settings',
]

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'LOAD_GUARD_CONFIG'
DEFAULT_CONFIG_NAME = 'load-guard.json'


class StrictModel(pydantic.BaseModel):
    """Base model with strict validation.

    Config:
    - extra='forbid': Reject unknown fields (fail-fast)
    - strict=True: No implicit type coercion
    - frozen=True: Immutable after creation
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',
        strict=True,
        frozen=True,
    )


class LoaderSettings(StrictModel):
    """Behaviour switches for ``DebugClassLoader``."""

    # Builtin warning categories forced visible while a module executes
    elevated_warnings: tuple[str, ...] = ('SyntaxWarning', 'ImportWarning')
    # Class names that trigger a reserved-name advisory
    reserved_names: tuple[str, ...] = tuple(keyword.softkwlist)
    # 'off' skips filename case verification even on case-insensitive filesystems
    case_check: Literal['auto', 'off'] = 'auto'

    @pydantic.field_validator('elevated_warnings')
    @classmethod
    def _known_categories(cls, names: tuple[str, ...]) -> tuple[str, ...]:
        for name in names:
            category = getattr(builtins, name, None)
            if not (isinstance(category, type) and issubclass(category, Warning)):
                raise ValueError(f'{name!r} is not a builtin warning category')
        return names

    @property
    def warning_categories(self) -> tuple[type[Warning], ...]:
        return tuple(getattr(builtins, name) for name in self.elevated_warnings)


def load_settings(path: Path | None = None) -> LoaderSettings:
    """Load settings from JSON, or defaults when no config file exists.

    Raises:
        ValueError: If the config file exists but is invalid.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else Path.cwd() / DEFAULT_CONFIG_NAME

    if not path.exists():
        logger.debug('[LOAD] No config at %s, using defaults', path)
        return LoaderSettings()

    try:
        settings = LoaderSettings.model_validate_json(path.read_text())
    except pydantic.ValidationError as e:
        raise ValueError(f'Invalid config file at {path}: {e}') from e

    logger.debug('[LOAD] Loaded settings from %s', path)
    return settings
