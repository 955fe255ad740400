"""Tests for structural classification of live classes."""

from __future__ import annotations

import abc
import typing
from typing import Protocol

import pytest

from load_guard.annotations import Annotation
from load_guard.descriptors import ClassKind, TypeDescriptor, Visibility, classify, qualified_name


class Sized(Protocol):
    def size(self) -> int: ...


class Named(Protocol):
    def name(self) -> str: ...


class NamedSized(Named, Sized, Protocol):
    pass


class Store(abc.ABC):
    @abc.abstractmethod
    def get(self, key: str) -> bytes: ...

    @abc.abstractmethod
    def put(self, key: str, value: bytes) -> None: ...


class PartialStore(abc.ABC):
    """Abstract, but ships a concrete helper: a base class, not an interface."""

    @abc.abstractmethod
    def get(self, key: str) -> bytes: ...

    def get_text(self, key: str) -> str:
        return self.get(key).decode()


class LoggingMixin:
    def log(self, message: str) -> None:
        pass


class Base(Sized):
    def size(self) -> int:
        return 0


class Child(LoggingMixin, Base, Named):
    """A child."""

    def name(self) -> str:
        return 'child'

    def _refresh(self) -> None:
        pass

    def __rebuild(self) -> None:
        pass

    @staticmethod
    def build() -> Child:
        return Child()

    @classmethod
    def create(cls) -> Child:
        return cls()

    @typing.final
    def close(self) -> None:
        pass


class TestClassify:
    @pytest.mark.parametrize(
        'cls, kind',
        [
            (Sized, ClassKind.INTERFACE),
            (NamedSized, ClassKind.INTERFACE),
            (Store, ClassKind.INTERFACE),
            (PartialStore, ClassKind.CLASS),
            (LoggingMixin, ClassKind.TRAIT),
            (Base, ClassKind.CLASS),
            (Child, ClassKind.CLASS),
            (abc.ABC, ClassKind.CLASS),
        ],
    )
    def test_kind(self, cls: type, kind: ClassKind) -> None:
        assert classify(cls) is kind

    def test_protocol_implementation_is_a_class(self) -> None:
        """Subclassing a protocol without listing Protocol again makes a concrete class."""
        assert classify(Base) is ClassKind.CLASS


class TestTypeDescriptor:
    def test_names(self) -> None:
        descriptor = TypeDescriptor(Child)
        assert descriptor.name == f'{__name__}.Child'
        assert descriptor.short_name == 'Child'
        assert qualified_name(Child) == descriptor.name

    def test_parent_skips_mixins_and_interfaces(self) -> None:
        parent = TypeDescriptor(Child).parent
        assert parent is not None
        assert parent.cls is Base

    def test_no_parent_for_object_subclass(self) -> None:
        assert TypeDescriptor(Base).parent is None
        assert TypeDescriptor(LoggingMixin).parent is None

    def test_own_interfaces_exclude_inherited(self) -> None:
        """Sized comes through Base, so only Named is Child's own."""
        assert [iface.cls for iface in TypeDescriptor(Child).own_interfaces] == [Named]

    def test_own_interfaces_exclude_those_of_other_interfaces(self) -> None:
        own = [iface.cls for iface in TypeDescriptor(NamedSized).own_interfaces]
        assert Named in own
        assert Sized in own
        assert typing.Protocol not in own

    def test_traits(self) -> None:
        assert [trait.cls for trait in TypeDescriptor(Child).traits] == [LoggingMixin]

    def test_doc_is_not_inherited(self) -> None:
        class Undocumented(Child):
            pass

        assert TypeDescriptor(Child).doc == 'A child.'
        assert TypeDescriptor(Undocumented).doc is None

    def test_methods(self) -> None:
        methods = {method.name: method for method in TypeDescriptor(Child).methods}
        # Protocol machinery may add dunder hooks to the namespace
        declared = {name for name in methods if not name.startswith('__')}
        assert declared == {'name', '_refresh', '_Child__rebuild', 'build', 'create', 'close'}
        assert methods['name'].visibility is Visibility.PUBLIC
        assert methods['_refresh'].visibility is Visibility.PROTECTED
        assert methods['_Child__rebuild'].visibility is Visibility.PRIVATE
        assert methods['close'].markers == {Annotation.FINAL: ''}

    def test_builtin(self) -> None:
        assert TypeDescriptor(int).is_builtin
        assert TypeDescriptor(dict).is_builtin
        assert not TypeDescriptor(Child).is_builtin
