"""Class descriptors: the structural view the verifier needs of a class.

The verification algorithm only asks a handful of questions about a class
(name, parent, own interfaces, mixins, docstring, directly declared methods).
``ClassDescriptor`` names those questions; ``TypeDescriptor`` answers them for
live Python types.

Python has no declared interfaces or traits, so they are recognised
structurally:

- **interface**: a ``typing.Protocol`` class, or an ``abc.ABCMeta`` class with
  abstract methods whose own non-dunder functions are all abstract
- **trait**: a mixin, i.e. a class whose name ends in ``Mixin``
- **class**: everything else

The parent is the first direct base that is a plain class (``object`` is
never a parent). Interfaces are taken from the whole MRO; "own" interfaces
drop those already provided by the parent or by another own interface.
"""

from __future__ import annotations

__all__ = [
    'ClassDescriptor',
    'ClassKind',
    'MethodDescriptor',
    'TypeDescriptor',
    'Visibility',
    'classify',
    'qualified_name',
]

import abc
import enum
import inspect
import types
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from load_guard.annotations import Annotation, decorator_annotations

# CPython sets this flag on every class created by a class statement or type().
# Static C types (int, dict, ...) lack it.
_Py_TPFLAGS_HEAPTYPE = 1 << 9


class ClassKind(enum.Enum):
    CLASS = 'class'
    INTERFACE = 'interface'
    TRAIT = 'trait'


class Visibility(enum.Enum):
    PUBLIC = 'public'
    PROTECTED = 'protected'
    PRIVATE = 'private'


@dataclass(frozen=True)
class MethodDescriptor:
    """A method declared directly in a class body."""

    name: str
    visibility: Visibility
    doc: str | None
    markers: Mapping[Annotation, str]


class ClassDescriptor(Protocol):
    """What the verifier reads about a class."""

    @property
    def name(self) -> str: ...

    @property
    def short_name(self) -> str: ...

    @property
    def kind(self) -> ClassKind: ...

    @property
    def is_builtin(self) -> bool: ...

    @property
    def doc(self) -> str | None: ...

    @property
    def markers(self) -> Mapping[Annotation, str]: ...

    @property
    def parent(self) -> ClassDescriptor | None: ...

    @property
    def own_interfaces(self) -> Sequence[ClassDescriptor]: ...

    @property
    def traits(self) -> Sequence[ClassDescriptor]: ...

    @property
    def methods(self) -> Sequence[MethodDescriptor]: ...


class TypeDescriptor:
    """``ClassDescriptor`` backed by a live Python type."""

    __slots__ = ('_cls',)

    def __init__(self, cls: type) -> None:
        self._cls = cls

    def __repr__(self) -> str:
        return f'TypeDescriptor({self.name})'

    @property
    def cls(self) -> type:
        return self._cls

    @property
    def name(self) -> str:
        return qualified_name(self._cls)

    @property
    def short_name(self) -> str:
        return self._cls.__name__

    @property
    def kind(self) -> ClassKind:
        return classify(self._cls)

    @property
    def is_builtin(self) -> bool:
        return not self._cls.__flags__ & _Py_TPFLAGS_HEAPTYPE

    @property
    def doc(self) -> str | None:
        # __doc__ is inherited through attribute lookup; only the own one counts
        doc = self._cls.__dict__.get('__doc__')
        return doc if isinstance(doc, str) else None

    @property
    def markers(self) -> Mapping[Annotation, str]:
        return decorator_annotations(self._cls)

    @property
    def parent(self) -> TypeDescriptor | None:
        base = _parent_type(self._cls)
        return TypeDescriptor(base) if base is not None else None

    @property
    def own_interfaces(self) -> Sequence[TypeDescriptor]:
        return [TypeDescriptor(iface) for iface in _own_interfaces(self._cls)]

    @property
    def traits(self) -> Sequence[TypeDescriptor]:
        return [TypeDescriptor(base) for base in self._cls.__bases__ if classify(base) is ClassKind.TRAIT]

    @property
    def methods(self) -> Sequence[MethodDescriptor]:
        methods: list[MethodDescriptor] = []
        for attr_name, value in self._cls.__dict__.items():
            func = _unwrap_function(value)
            if func is None:
                continue
            methods.append(
                MethodDescriptor(
                    name=attr_name,
                    visibility=_visibility(attr_name, self._cls.__name__),
                    doc=func.__doc__,
                    markers=decorator_annotations(func),
                )
            )
        return methods


# =============================================================================
# Structural classification
# =============================================================================


def qualified_name(cls: type) -> str:
    """Dotted name used as the class key (``module.Qualname``)."""
    return f'{cls.__module__}.{cls.__qualname__}'


def classify(cls: type) -> ClassKind:
    """Decide whether ``cls`` plays the role of a class, interface or trait."""
    if cls.__dict__.get('_is_protocol', False):
        return ClassKind.INTERFACE
    if isinstance(cls, abc.ABCMeta) and _is_pure_abstract(cls):
        return ClassKind.INTERFACE
    if cls.__name__.endswith('Mixin'):
        return ClassKind.TRAIT
    return ClassKind.CLASS


def _is_pure_abstract(cls: abc.ABCMeta) -> bool:
    if not getattr(cls, '__abstractmethods__', None):
        return False
    for attr_name, value in cls.__dict__.items():
        if _is_dunder(attr_name):
            continue
        func = _unwrap_function(value)
        if func is not None and not getattr(func, '__isabstractmethod__', False):
            return False
    return True


def _parent_type(cls: type) -> type | None:
    for base in cls.__bases__:
        if base is object:
            continue
        if classify(base) is ClassKind.CLASS:
            return base
    return None


def _interfaces(cls: type) -> dict[type, None]:
    """All interfaces ``cls`` provides, in MRO order (excluding ``cls`` itself)."""
    return {base: None for base in cls.__mro__[1:] if classify(base) is ClassKind.INTERFACE}


def _own_interfaces(cls: type) -> list[type]:
    own = _interfaces(cls)

    parent = _parent_type(cls)
    if parent is not None:
        for inherited in _interfaces(parent):
            own.pop(inherited, None)

    for iface in list(own):
        for inherited in _interfaces(iface):
            own.pop(inherited, None)

    return list(own)


def _unwrap_function(value: object) -> types.FunctionType | None:
    """Return the plain function behind a method-like class attribute."""
    if isinstance(value, staticmethod | classmethod):
        value = value.__func__
    if inspect.isfunction(value):
        return value
    return None


def _is_dunder(name: str) -> bool:
    return name.startswith('__') and name.endswith('__')


def _visibility(name: str, owner: str) -> Visibility:
    # ``def __x`` in a class body is stored under the mangled name ``_Owner__x``
    mangled = f'_{owner.lstrip("_")}__'
    if name.startswith(mangled) and not name.endswith('__'):
        return Visibility.PRIVATE
    if name.startswith('__') and not name.endswith('__'):
        return Visibility.PRIVATE
    if name.startswith('_') and not _is_dunder(name):
        return Visibility.PROTECTED
    return Visibility.PUBLIC
