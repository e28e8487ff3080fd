"""
Introspection

This module provides the type-resolution collaborator of the factory.
The ``TypeResolver`` answers the questions bean creation needs about a
type:

- Which type does a dotted type name refer to
- Which constructors (``__init__`` plus marked alternative constructors)
  and which factory methods does it offer, with parameter types
- Which members can be set after construction, and their types

``IntrospectingTypeResolver`` answers them with ``inspect`` and
``typing.get_type_hints()``, resolving forward references the way
annotations are usually written (``"ClassName"`` strings, ``X | Y``).
"""

import ast
import importlib
import inspect
import threading
import types
import typing
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
from uuid import UUID

from .exceptions import CannotLoadBeanClassError

_CONSTRUCTOR_MARKER = "__kotbeans_constructor__"
_OVERLOAD_MARKER = "__kotbeans_overload_of__"

PRIMITIVE_DEFAULTS: Dict[type, Any] = {
    bool: False,
    int: 0,
    float: 0.0,
    complex: 0j,
}

_SIMPLE_TYPES = (str, bytes, bytearray, int, float, complex, bool, Decimal, PurePath, UUID, Enum, type)

# Weight of a parameter without a usable annotation when ranking candidates
UNTYPED_WEIGHT = 1024


def constructor(func):
    """Mark a classmethod or staticmethod as an alternative constructor.

    Example::

        class Client:
            def __init__(self, host: str, port: int): ...

            @classmethod
            @constructor
            def from_url(cls, url: str) -> 'Client': ...
    """
    target = func.__func__ if isinstance(func, (classmethod, staticmethod)) else func
    setattr(target, _CONSTRUCTOR_MARKER, True)
    return func


def overload_of(method_name: str):
    """Mark a method as an additional overload of factory method ``method_name``.

    Example::

        class Factories:
            def create(self, name: str) -> Widget: ...

            @overload_of("create")
            def create_sized(self, name: str, size: int) -> Widget: ...
    """

    def decorator(func):
        target = func.__func__ if isinstance(func, (classmethod, staticmethod)) else func
        setattr(target, _OVERLOAD_MARKER, method_name)
        return func

    return decorator


@dataclass(frozen=True)
class ParameterInfo:
    """One parameter of a constructor or factory method."""
    name: str
    annotation: Any = None
    has_default: bool = False
    default: Any = None
    keyword_only: bool = False


@dataclass(frozen=True)
class Executable:
    """A constructor or factory method the factory may invoke."""
    name: str
    function: Callable[..., Any]
    parameters: Tuple[ParameterInfo, ...]
    declaring_type: Optional[type] = None
    return_type: Any = None

    def invoke(self, args: Sequence[Any]) -> Any:
        positional = []
        keywords = {}
        for param, value in zip(self.parameters, args):
            if param.keyword_only:
                keywords[param.name] = value
            else:
                positional.append(value)
        return self.function(*positional, **keywords)

    def describe(self) -> str:
        return f"{self.name}({', '.join(p.name for p in self.parameters)})"


@dataclass(frozen=True)
class DependencyDescriptor:
    """A dependency to autowire by type.

    Attributes:
        name: Parameter or member name, used as a fallback qualifier
            when several candidates match; None disables the fallback
        annotation: Declared type, possibly ``Optional``, ``List[T]``,
            ``Set[T]`` or ``Dict[str, T]``
        required: Whether a missing candidate is an error
    """
    name: Optional[str]
    annotation: Any
    required: bool = True


class TypeResolver(ABC):
    """Collaborator answering type questions for bean creation."""

    @abstractmethod
    def resolve_type(self, type_name: str) -> type:
        """Map a dotted type name to a type.

        Raises:
            CannotLoadBeanClassError: When the name cannot be resolved
        """

    @abstractmethod
    def constructors(self, cls: type) -> List[Executable]:
        """Return the constructors of ``cls``."""

    @abstractmethod
    def factory_methods(self, owner: Any, method_name: str, static: bool) -> List[Executable]:
        """Return the factory-method candidates named ``method_name``.

        Args:
            owner: Factory instance, or the bean class for static methods
            method_name: Declared factory method name
            static: Whether ``owner`` is a class whose static or class
                methods are used
        """

    @abstractmethod
    def writable_members(self, cls: type) -> Dict[str, Any]:
        """Return settable member names of ``cls`` and their declared types."""


class IntrospectingTypeResolver(TypeResolver):
    """TypeResolver based on ``inspect`` and ``typing.get_type_hints()``.

    Constructor and member lookups are cached per class.
    """

    def __init__(self):
        self._constructors: Dict[type, List[Executable]] = {}
        self._members: Dict[type, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def resolve_type(self, type_name: str) -> type:
        module_name, _, attr_path = type_name.partition(":")
        if not attr_path:
            module_name, _, attr_path = type_name.rpartition(".")
        if not module_name or not attr_path:
            raise CannotLoadBeanClassError(
                f"Cannot resolve type name '{type_name}': expected 'package.module.ClassName'"
            )
        try:
            target: Any = importlib.import_module(module_name)
            for part in attr_path.split("."):
                target = getattr(target, part)
        except (ImportError, AttributeError) as ex:
            raise CannotLoadBeanClassError(f"Cannot load type '{type_name}'", cause=ex) from ex
        if not isinstance(target, type):
            raise CannotLoadBeanClassError(f"'{type_name}' does not name a class")
        return target

    def constructors(self, cls: type) -> List[Executable]:
        cached = self._constructors.get(cls)
        if cached is not None:
            return cached

        # Immutable types such as NamedTuples take their arguments in __new__
        uses_new = cls.__init__ is object.__init__ and cls.__new__ is not object.__new__
        initializer = cls.__new__ if uses_new else cls.__init__
        result = [Executable(
            name=f"{cls.__qualname__}.{initializer.__name__}",
            function=cls,
            parameters=tuple(self._parameters(initializer, cls, skip_first=True)),
            declaring_type=cls,
            return_type=cls,
        )]
        for name, member in _class_members(cls):
            function = member.__func__ if isinstance(member, (classmethod, staticmethod)) else None
            if function is not None and getattr(function, _CONSTRUCTOR_MARKER, False):
                bound = getattr(cls, name)
                result.append(self._executable(f"{cls.__qualname__}.{name}", bound, cls))

        with self._lock:
            self._constructors[cls] = result
        return result

    def factory_methods(self, owner: Any, method_name: str, static: bool) -> List[Executable]:
        cls = owner if static else type(owner)
        prefix = cls.__qualname__
        result: List[Executable] = []
        for name, member in _class_members(cls):
            raw = member.__func__ if isinstance(member, (classmethod, staticmethod)) else member
            if not callable(raw):
                continue
            if name != method_name and getattr(raw, _OVERLOAD_MARKER, None) != method_name:
                continue
            if static and not isinstance(member, (classmethod, staticmethod)):
                continue
            result.append(self._executable(f"{prefix}.{name}", getattr(owner, name), cls))
        return result

    def writable_members(self, cls: type) -> Dict[str, Any]:
        cached = self._members.get(cls)
        if cached is not None:
            return cached

        members: Dict[str, Any] = {}
        hints = _resolve_type_hints(cls)
        for name, hint in hints.items():
            if name.startswith("_") or typing.get_origin(hint) is typing.ClassVar or hint is typing.ClassVar:
                continue
            members[name] = hint
        for name, member in _class_members(cls):
            if name.startswith("_"):
                continue
            if isinstance(member, property):
                if member.fset is not None:
                    members[name] = _property_type(member)
            elif name not in hints and _is_plain_class_attribute(member):
                # Unannotated class attribute, e.g. ``dep = None``
                members[name] = None

        with self._lock:
            self._members[cls] = members
        return members

    def _executable(self, name: str, function: Callable, cls: type) -> Executable:
        hints = _resolve_type_hints(function)
        return Executable(
            name=name,
            function=function,
            parameters=tuple(self._parameters(function, cls, skip_first=False)),
            declaring_type=cls,
            return_type=hints.get("return"),
        )

    def _parameters(self, function: Callable, cls: type, skip_first: bool) -> List[ParameterInfo]:
        try:
            sig = inspect.signature(function)
        except (ValueError, TypeError):
            # Built-in or C extension callables without a signature
            return []

        hints = _resolve_type_hints(function)
        parameters = []
        for index, (param_name, param) in enumerate(sig.parameters.items()):
            if skip_first and index == 0:
                continue
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            annotation = hints.get(param_name, param.annotation)
            if annotation is inspect.Parameter.empty:
                annotation = None
            elif isinstance(annotation, str):
                annotation = _resolve_string_annotation(cls, annotation)
            has_default = param.default is not inspect.Parameter.empty
            parameters.append(ParameterInfo(
                name=param_name,
                annotation=annotation,
                has_default=has_default,
                default=param.default if has_default else None,
                keyword_only=param.kind == inspect.Parameter.KEYWORD_ONLY,
            ))
        return parameters


def _class_members(cls: type) -> List[Tuple[str, Any]]:
    seen = set()
    result = []
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name, member in vars(klass).items():
            if name not in seen:
                seen.add(name)
                result.append((name, member))
    return result


def _is_plain_class_attribute(member: Any) -> bool:
    if callable(member) or isinstance(member, type):
        return False
    return not (hasattr(type(member), "__get__") or hasattr(type(member), "__set__"))


def _property_type(prop: property) -> Any:
    value_hints = [v for k, v in _resolve_type_hints(prop.fset).items() if k != "return"]
    if value_hints:
        return value_hints[0]
    if prop.fget is not None:
        return _resolve_type_hints(prop.fget).get("return")
    return None


def _resolve_type_hints(target: Any) -> Dict[str, Any]:
    """Resolve type hints of a class or function using typing.get_type_hints().

    Returns an empty dict if resolution fails, leaving string annotations
    to the manual fallback.
    """
    try:
        return typing.get_type_hints(target)
    except NameError:
        # Type not found in scope - common with local classes
        return {}
    except RecursionError:
        return {}
    except TypeError:
        # PEP 604 | used with a type that doesn't support it
        return {}
    except Exception:
        return {}


def _resolve_string_annotation(cls: type, annotation: str) -> Any:
    """Attempt to resolve a string annotation in the namespace of ``cls``.

    Unresolvable annotations become None so the parameter is treated as
    untyped instead of failing bean creation.
    """
    module = inspect.getmodule(cls)
    namespace: Dict[str, Any] = {}
    if module is not None:
        namespace.update(vars(module))
    namespace.update(vars(cls))
    namespace.setdefault("Union", Union)
    namespace.setdefault("Optional", Optional)
    try:
        return eval(_convert_union_syntax(annotation), namespace)
    except Exception:
        return None


def _convert_union_syntax(annotation: str) -> str:
    """Convert PEP 604 union syntax (X | Y) to Union[X, Y].

    Example::

        >>> _convert_union_syntax('int | str')
        'Union[int, str]'
    """
    if '|' not in annotation:
        return annotation
    try:
        tree = ast.parse(annotation, mode='eval')
    except SyntaxError:
        return annotation

    class UnionTransformer(ast.NodeTransformer):
        """Transform BinOp(|) nodes to Subscript(Union[...]) nodes."""

        def visit_BinOp(self, node: ast.BinOp) -> ast.AST:
            if isinstance(node.op, ast.BitOr):
                types = [self.visit(t) for t in _collect_union_types(node)]
                return ast.Subscript(
                    value=ast.Name(id='Union', ctx=ast.Load()),
                    slice=ast.Tuple(elts=types, ctx=ast.Load()),
                    ctx=ast.Load()
                )
            self.generic_visit(node)
            return node

    new_tree = UnionTransformer().visit(tree)
    ast.fix_missing_locations(new_tree)
    return ast.unparse(new_tree.body)


def _collect_union_types(node: ast.BinOp) -> List[ast.AST]:
    types: List[ast.AST] = []

    def collect(n: ast.AST) -> None:
        if isinstance(n, ast.BinOp) and isinstance(n.op, ast.BitOr):
            collect(n.left)
            collect(n.right)
        else:
            types.append(n)

    collect(node)
    return types


# ----------------------------------------------------------------------
# Type matching helpers
# ----------------------------------------------------------------------

def unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Split ``Optional[T]`` into ``(T, True)``; other types give ``(type, False)``."""
    if _is_union(annotation):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) < len(typing.get_args(annotation)):
            return (args[0] if len(args) == 1 else Union[tuple(args)]), True
    return annotation, False


def collection_element(annotation: Any) -> Tuple[Optional[type], Any]:
    """Return ``(container, element type)`` for ``List[T]``, ``Set[T]``,
    ``Tuple[T, ...]`` and ``Dict[str, T]`` annotations, else ``(None, None)``.
    """
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin in (list, set, frozenset) and len(args) == 1:
        return origin, args[0]
    if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
        return tuple, args[0]
    if origin is dict and len(args) == 2 and args[0] is str:
        return dict, args[1]
    return None, None


def is_instance(value: Any, annotation: Any) -> bool:
    """``isinstance`` that understands ``typing`` constructs.

    Unknown constructs (TypeVars, unresolved strings) match anything.
    """
    if annotation is None or annotation is Any or annotation is object:
        return True
    if _is_union(annotation):
        return any(is_instance(value, arg) for arg in typing.get_args(annotation))
    origin = typing.get_origin(annotation)
    if origin is not None:
        return isinstance(origin, type) and isinstance(value, origin)
    if isinstance(annotation, type):
        return isinstance(value, annotation)
    return True


def is_assignable(target: Any, candidate: Optional[type]) -> bool:
    """Whether instances of ``candidate`` can be used where ``target`` is declared."""
    if target is None or target is Any or target is object:
        return True
    if candidate is None:
        return False
    if _is_union(target):
        return any(is_assignable(arg, candidate) for arg in typing.get_args(target))
    origin = typing.get_origin(target)
    if origin is not None:
        target = origin
    return isinstance(target, type) and isinstance(candidate, type) and issubclass(candidate, target)


def type_distance(value: Any, annotation: Any) -> int:
    """How far the type of ``value`` is from ``annotation`` in the MRO.

    0 means an exact match. Untyped parameters weigh ``UNTYPED_WEIGHT``.
    """
    if annotation is None or annotation is Any:
        return UNTYPED_WEIGHT
    annotation, _ = unwrap_optional(annotation)
    origin = typing.get_origin(annotation) or annotation
    if not isinstance(origin, type):
        return UNTYPED_WEIGHT
    mro = type(value).__mro__
    if origin in mro:
        return mro.index(origin)
    return UNTYPED_WEIGHT


def is_simple_type(annotation: Any) -> bool:
    """Whether a declared member type counts as a simple value type."""
    annotation, _ = unwrap_optional(annotation)
    origin = typing.get_origin(annotation)
    if origin in (list, set, frozenset, tuple) and typing.get_args(annotation):
        return all(is_simple_type(a) for a in typing.get_args(annotation) if a is not Ellipsis)
    return isinstance(annotation, type) and issubclass(annotation, _SIMPLE_TYPES)


def primitive_default(annotation: Any) -> Tuple[bool, Any]:
    """Return ``(True, zero value)`` for primitive numeric and bool types."""
    if isinstance(annotation, type) and annotation in PRIMITIVE_DEFAULTS:
        return True, PRIMITIVE_DEFAULTS[annotation]
    return False, None


def type_name(annotation: Any) -> str:
    return getattr(annotation, "__qualname__", None) or str(annotation)


def _is_union(annotation: Any) -> bool:
    origin = typing.get_origin(annotation)
    if origin is Union:
        return True
    return origin is types.UnionType
