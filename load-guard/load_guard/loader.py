"""Import wrapper checking that every loaded module really is what was asked for.

``DebugClassLoader`` wraps the finders of an import chain (``sys.meta_path``
by default). Each module the wrapped finder locates is executed as usual, then
verified:

- the module is registered under the requested name, with the same case
- the file the finder found actually defined the module
- on case-insensitive filesystems, the file name case matches the module name
- classes the module declares do not extend, implement or use declarations
  marked ``@final``, ``@deprecated`` or ``@internal`` by another vendor

Integrity failures raise ``ClassIntegrityError`` and abort the import.
Marker findings are emitted as ``DeprecationAdvisory`` warnings.

Usage::

    DebugClassLoader.enable()       # wrap every finder on sys.meta_path
    import acme.models              # verified
    DebugClassLoader.disable()      # restore the original finders

Wrapping is idempotent and ``disable`` restores the chain entry for entry.
The wrapper assumes one import in flight at a time; nested imports triggered
while verifying parents recurse on the same stack.
"""

from __future__ import annotations

__all__ = ['DebugClassLoader']

import contextlib
import importlib
import importlib.util
import logging
import os
import sys
import types
from collections.abc import Iterator, MutableSequence, Sequence
from contextlib import AbstractContextManager
from importlib.machinery import ModuleSpec
from typing import Any, TypeAlias

from load_guard.annotations import METHOD_ANNOTATIONS, Annotation, parse_docstring
from load_guard.case_check import CaseCheck, CaseMismatch, find_case_mismatch
from load_guard.descriptors import ClassDescriptor, ClassKind, TypeDescriptor, Visibility
from load_guard.errors import ClassIntegrityError
from load_guard.registry import VerificationRegistry, default_registry
from load_guard.reporting import elevated_reporting, emit_advisories
from load_guard.settings import LoaderSettings

logger = logging.getLogger(__name__)

# A meta path finder (anything with find_spec), or a legacy callable that
# imports the module named by its single argument as a side effect.
Resolver: TypeAlias = Any


class DebugClassLoader:
    """Verifying wrapper around one import finder.

    Args:
        finder: The wrapped resolver.
        registry: Verification caches. Defaults to the process-wide registry.
        settings: Loader settings. Defaults to ``LoaderSettings()``.
    """

    def __init__(
        self,
        finder: Resolver,
        *,
        registry: VerificationRegistry | None = None,
        settings: LoaderSettings | None = None,
    ) -> None:
        self._finder = finder
        self._is_finder = callable(getattr(finder, 'find_spec', None))
        self._registry = registry if registry is not None else default_registry()
        self._settings = settings if settings is not None else LoaderSettings()
        self._loaded: set[str] = set()

        if self._settings.case_check == 'auto':
            self._case_check = self._registry.case_check
        else:
            self._case_check = CaseCheck.SENSITIVE

    def __repr__(self) -> str:
        return f'DebugClassLoader({self._finder!r})'

    @property
    def finder(self) -> Resolver:
        """The wrapped resolver."""
        return self._finder

    @property
    def registry(self) -> VerificationRegistry:
        return self._registry

    # -- Chain management --

    @classmethod
    def enable(
        cls,
        chain: MutableSequence[Resolver] | None = None,
        *,
        registry: VerificationRegistry | None = None,
        settings: LoaderSettings | None = None,
    ) -> None:
        """Wrap every resolver of ``chain`` (default ``sys.meta_path``) in place.

        Resolvers that are already wrapped are left as they are.
        """
        if chain is None:
            chain = sys.meta_path
        entries: Sequence[Resolver] = list(chain)
        chain[:] = [
            entry if isinstance(entry, DebugClassLoader) else cls(entry, registry=registry, settings=settings)
            for entry in entries
        ]
        logger.debug('[LOAD] Wrapped %d import finders', len(entries))

    @classmethod
    def disable(cls, chain: MutableSequence[Resolver] | None = None) -> None:
        """Replace every wrapper of ``chain`` (default ``sys.meta_path``) with its resolver."""
        if chain is None:
            chain = sys.meta_path
        entries: Sequence[Resolver] = list(chain)
        chain[:] = [entry.finder if isinstance(entry, DebugClassLoader) else entry for entry in entries]
        logger.debug('[LOAD] Unwrapped import finders')

    # -- Meta path finder protocol --

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None = None,
        target: types.ModuleType | None = None,
    ) -> ModuleSpec | None:
        """Delegate to the wrapped finder and verify whatever it loads."""
        if not self._is_finder:
            return None
        spec: ModuleSpec | None = self._finder.find_spec(fullname, path, target)
        if spec is None or spec.loader is None or isinstance(spec.loader, _VerifyingLoader):
            return spec
        file = spec.origin if spec.has_location else None
        spec.loader = _VerifyingLoader(self, spec.loader, fullname, file)
        return spec

    def invalidate_caches(self) -> None:
        invalidate = getattr(self._finder, 'invalidate_caches', None)
        if invalidate is not None:
            invalidate()

    # -- Loading --

    def find_file(self, fullname: str) -> str | None:
        """Path of the file the wrapped finder would load for ``fullname``, if any."""
        if not self._is_finder:
            return None
        try:
            spec = self._locate(fullname)
        except Exception as e:
            # Locating a submodule imports its parent package, whose code may fail
            logger.debug('[LOAD] %s: cannot locate (%s: %s)', fullname, type(e).__name__, e)
            return None
        if spec is None or not spec.has_location:
            return None
        return spec.origin

    def load_class(self, fullname: str) -> None:
        """Load ``fullname`` through the wrapped resolver, then verify it.

        A name this wrapper already attempted is not loaded again; the
        verification step is then a cache hit.

        Raises:
            ClassIntegrityError: If the loaded module fails verification. The
                module is removed from ``sys.modules`` and its parent package
                first, and the name may be loaded again.
        """
        file: str | None = None
        registered: list[str] = []

        if not self._is_finder:
            with elevated_reporting(self._settings.warning_categories):
                self._finder(fullname)
        elif fullname in self._loaded:
            logger.debug('[LOAD] %s: already attempted', fullname)
        else:
            self._loaded.add(fullname)
            spec = self._locate(fullname)
            if spec is None:
                logger.debug('[LOAD] %s: not found by %r', fullname, self._finder)
            else:
                file = spec.origin if spec.has_location else None
                if self._execute(spec, file):
                    registered.append(spec.name)

        try:
            self.check_class(fullname, file)
        except ClassIntegrityError:
            # A rejected module must not stay importable, and a retry must load it again
            self._loaded.discard(fullname)
            for name in {fullname, *registered}:
                _unregister(name)
            raise

    def _locate(self, fullname: str) -> ModuleSpec | None:
        path: Sequence[str] | None = None
        parent = fullname.rpartition('.')[0]
        if parent:
            try:
                parent_module = importlib.import_module(parent)
            except ModuleNotFoundError:
                logger.debug('[LOAD] %s: parent package %s not found', fullname, parent)
                return None
            path = getattr(parent_module, '__path__', None)
            if path is None:
                return None
        spec: ModuleSpec | None = self._finder.find_spec(fullname, path)
        return spec

    def _execute(self, spec: ModuleSpec, file: str | None) -> bool:
        """Create, register and run the module for ``spec`` the way ``import`` does.

        Returns:
            True if this call registered a new module in ``sys.modules``.
        """
        if spec.name in sys.modules:
            return False

        module = importlib.util.module_from_spec(spec)
        sys.modules[spec.name] = module
        try:
            if spec.loader is not None:
                with self._reporting_scope(file):
                    spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(spec.name, None)
            raise

        parent, _, child = spec.name.rpartition('.')
        if parent and parent in sys.modules:
            setattr(sys.modules[parent], child, sys.modules.get(spec.name, module))
        return True

    def _reporting_scope(self, file: str | None) -> AbstractContextManager[None]:
        """Warning scope for executing ``file``.

        Fresh bytecode only skips warning elevation. The module is still
        verified after it runs, since bytecode is cached for nearly every
        import.
        """
        if file is not None and _bytecode_is_fresh(file):
            # Compile-time warnings cannot fire when no compilation happens
            logger.debug('[LOAD] %s: fresh bytecode, loading directly', file)
            return contextlib.nullcontext()
        return elevated_reporting(self._settings.warning_categories)

    # -- Verification --

    def check_class(self, fullname: str, file: str | None = None) -> None:
        """Verify the module registered for ``fullname``.

        Args:
            fullname: The name that was requested.
            file: The file the finder located, or None when the module did
                not come from a file (builtins, frozen, legacy resolvers).

        Raises:
            ClassIntegrityError: On case-mismatched names, invalid names, a
                file that did not define the module, or a file name whose case
                differs from the module name.
        """
        found = _lookup_module(fullname)

        if found is not None:
            if fullname in self._registry.checked_modules:
                logger.debug('[CHECK] Cache hit: %s', fullname)
                return

            declared, module = found
            if file is None and getattr(module, '__file__', None) is None:
                self._registry.checked_modules.add(fullname)
                return  # builtin, frozen or namespace package

            if declared != fullname and declared.lower() == fullname.lower():
                raise ClassIntegrityError(
                    f'Case mismatch between loaded and declared module names: "{fullname}" vs "{declared}".'
                )

            logger.debug('[CHECK] Inspecting module %s', declared)
            for cls in _declared_classes(module, declared):
                self.check_type(cls)

        if not file:
            if found is not None:
                self._registry.checked_modules.add(fullname)
            return

        if found is None:
            if '/' in fullname or '\\' in fullname:
                raise ClassIntegrityError(
                    f'Trying to load a module with an invalid name "{fullname}". '
                    'Be careful that the package separator is "." in Python, not "/".'
                )
            raise ClassIntegrityError(
                f'The import system expected module "{fullname}" to be defined in file "{file}". '
                'The file was found but the module was not in it, the module name or package probably has a typo.'
            )

        if self._case_check:
            mismatch = self._check_case(found[1], file, fullname)
            if mismatch is not None:
                raise ClassIntegrityError(
                    f'Case mismatch between module and real file names: '
                    f'"{mismatch.expected}" vs "{mismatch.actual}" in "{mismatch.directory}".'
                )

        # Cached only once every check passed
        self._registry.checked_modules.add(fullname)

    def check_type(self, cls: type) -> None:
        """Verify one class and emit its advisories. Each class is verified once."""
        self._check_descriptor(TypeDescriptor(cls))

    def _check_descriptor(self, descriptor: ClassDescriptor) -> None:
        name = descriptor.name
        if name in self._registry.checked_classes:
            return
        self._registry.checked_classes.add(name)

        if descriptor.is_builtin:
            return

        logger.debug('[CHECK] Inspecting class %s', name)
        deprecations = self.check_annotations(descriptor)

        if descriptor.short_name in self._settings.reserved_names:
            deprecations.append(
                f'The "{name}" class uses the reserved name "{descriptor.short_name}", '
                'which is a soft keyword and may become a hard keyword in a future Python version.'
            )

        emit_advisories(deprecations, stacklevel=3)

    def check_annotations(self, descriptor: ClassDescriptor) -> list[str]:
        """Record the markers of ``descriptor`` and collect advisories about its ancestry.

        Parents, interfaces and mixins are verified first so their markers are
        known before they are consulted.
        """
        registry = self._registry
        deprecations: list[str] = []
        name = descriptor.name
        vendor = _vendor_prefix(name)

        markers = dict(parse_docstring(descriptor.doc))
        for kind, reason in descriptor.markers.items():
            markers.setdefault(kind, reason)
        for kind, reason in markers.items():
            registry.annotate(kind, name, reason)

        parent = descriptor.parent
        parent_and_interfaces: dict[str, ClassDescriptor] = {iface.name: iface for iface in descriptor.own_interfaces}
        if parent is not None:
            parent_and_interfaces[parent.name] = parent
            self._check_descriptor(parent)

            final = registry.annotation(Annotation.FINAL, parent.name)
            if final is not None:
                deprecations.append(
                    f'The "{parent.name}" class is considered final{final}. It may change without further '
                    f'notice as of its next major version. You should not extend it from "{name}".'
                )

        related = {**parent_and_interfaces, **{trait.name: trait for trait in descriptor.traits}}
        for use in related.values():
            self._check_descriptor(use)

            deprecated = registry.annotation(Annotation.DEPRECATED, use.name)
            if (
                deprecated is not None
                and not use.name.startswith(vendor)
                and registry.annotation(Annotation.DEPRECATED, name) is None
            ):
                verb = _relation_verb(descriptor.kind, use.kind)
                deprecations.append(
                    f'The "{name}" {descriptor.kind.value} {verb} "{use.name}" that is deprecated{deprecated}.'
                )

            internal = registry.annotation(Annotation.INTERNAL, use.name)
            if internal is not None and not use.name.startswith(vendor):
                deprecations.append(
                    f'The "{use.name}" {use.kind.value} is considered internal{internal}. It may change '
                    f'without further notice. You should not use it from "{name}".'
                )

        if descriptor.kind is ClassKind.TRAIT:
            return deprecations

        # Inherited method markers are defaults; the class's own docstrings seed on top
        for kind in METHOD_ANNOTATIONS:
            inherited: dict[str, tuple[str, str]] = {}
            for use in parent_and_interfaces.values():
                inherited = {**inherited, **registry.method_annotations(kind, use.name)}
            registry.set_method_annotations(kind, name, inherited)

        final_methods = registry.method_annotations(Annotation.FINAL, parent.name) if parent is not None else {}

        for method in descriptor.methods:
            if method.visibility is Visibility.PRIVATE:
                continue

            if method.name in final_methods:
                declaring, reason = final_methods[method.name]
                deprecations.append(
                    f'The "{declaring}.{method.name}()" method is considered final{reason}. It may change '
                    f'without further notice as of its next major version. You should not extend it from "{name}".'
                )

            internal_methods = registry.method_annotations(Annotation.INTERNAL, name)
            if method.name in internal_methods:
                declaring, reason = internal_methods[method.name]
                if not declaring.startswith(vendor):
                    deprecations.append(
                        f'The "{declaring}.{method.name}()" method is considered internal{reason}. It may change '
                        f'without further notice. You should not extend it from "{name}".'
                    )

            method_markers = dict(parse_docstring(method.doc, METHOD_ANNOTATIONS))
            for kind, reason in method.markers.items():
                if kind in METHOD_ANNOTATIONS:
                    method_markers.setdefault(kind, reason)
            for kind, reason in method_markers.items():
                registry.annotate_method(kind, name, method.name, reason)

        return deprecations

    def _check_case(self, module: object, file: str, fullname: str) -> CaseMismatch | None:
        real = os.path.realpath(getattr(module, '__file__', None) or file)
        if self._case_check is CaseCheck.INSENSITIVE_NON_NORMALIZING:
            real = self._registry.directories.resolve(real)
        return find_case_mismatch(fullname, file, real)


# ---------------------------------------------------------------------------
# Loader proxy
# ---------------------------------------------------------------------------


class _VerifyingLoader:
    """Loader proxy installed on specs returned through a ``DebugClassLoader``.

    ``exec_module`` runs the real loader under elevated warnings, then
    verifies the module. Every other attribute (``get_source``,
    ``get_resource_reader``, ...) is forwarded to the wrapped loader so
    ``inspect``, ``linecache`` and ``importlib.resources`` keep working.
    """

    __slots__ = ('_debug', '_loader', '_fullname', '_file')

    def __init__(self, debug: DebugClassLoader, loader: Any, fullname: str, file: str | None) -> None:
        self._debug = debug
        self._loader = loader
        self._fullname = fullname
        self._file = file

    def __repr__(self) -> str:
        return f'_VerifyingLoader({self._loader!r})'

    def __getattr__(self, name: str) -> Any:
        loader = object.__getattribute__(self, '_loader')
        return getattr(loader, name)

    @property
    def wrapped(self) -> Any:
        return self._loader

    def create_module(self, spec: ModuleSpec) -> types.ModuleType | None:
        create = getattr(self._loader, 'create_module', None)
        if create is None:
            return None
        module: types.ModuleType | None = create(spec)
        return module

    def exec_module(self, module: types.ModuleType) -> None:
        with self._debug._reporting_scope(self._file):
            self._loader.exec_module(module)
        self._debug.check_class(self._fullname, self._file)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_module_name(name: str) -> bool:
    return all(part.isidentifier() for part in name.split('.'))


def _lookup_module(fullname: str) -> tuple[str, object] | None:
    """Find the module registered for ``fullname``, ignoring case.

    Returns the registered name (``__name__`` when registered under the exact
    key) and the module, or None.
    """
    if not _is_module_name(fullname):
        return None

    module = sys.modules.get(fullname)
    if module is not None:
        declared = getattr(module, '__name__', None)
        if not isinstance(declared, str) or declared.lower() != fullname.lower():
            declared = fullname
        return declared, module

    folded = fullname.casefold()
    for key, candidate in list(sys.modules.items()):
        if key.casefold() == folded and candidate is not None:
            return key, candidate
    return None


def _unregister(name: str) -> None:
    """Drop ``name`` from ``sys.modules`` and from its parent package's namespace."""
    module = sys.modules.pop(name, None)
    parent, _, child = name.rpartition('.')
    package = sys.modules.get(parent) if parent else None
    if module is not None and package is not None and getattr(package, child, None) is module:
        delattr(package, child)


def _declared_classes(module: object, name: str) -> Iterator[type]:
    """Classes defined by ``module`` itself (not imported into it), in definition order."""
    seen: set[type] = set()
    for value in list(getattr(module, '__dict__', {}).values()):
        if isinstance(value, type) and value.__module__ == name and value not in seen:
            seen.add(value)
            yield value


def _vendor_prefix(name: str) -> str:
    """Leading package of a dotted name, separator included (``'acme.'``)."""
    head, dot, _ = name.partition('.')
    return head + dot if dot else ''


def _relation_verb(subject: ClassKind, used: ClassKind) -> str:
    if used is ClassKind.CLASS or subject is ClassKind.INTERFACE:
        return 'extends'
    if used is ClassKind.INTERFACE:
        return 'implements'
    return 'uses'


def _bytecode_is_fresh(file: str) -> bool:
    """True when ``__pycache__`` holds bytecode at least as new as ``file``."""
    if not file.endswith('.py'):
        return False
    try:
        cached = importlib.util.cache_from_source(file)
        return os.stat(cached).st_mtime >= os.stat(file).st_mtime
    except (NotImplementedError, OSError):
        # No cache tag for this interpreter, or no bytecode written yet
        return False
