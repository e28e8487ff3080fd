"""
Definition

Data classes describing how a bean is built.

A ``BeanDefinition`` is the raw, declarative description owned by a
definition source. A ``RootBeanDefinition`` is the flattened result of
merging a definition with its parent chain; it also carries the caches the
factory fills in while creating beans of that definition.
"""

import copy
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from .exceptions import BeanDefinitionValidationError
from .values import Mergeable

SCOPE_DEFAULT = ""
SCOPE_SINGLETON = "singleton"
SCOPE_PROTOTYPE = "prototype"

# Destroy method name that asks for a conventional close()/shutdown() lookup
INFER_METHOD = "(inferred)"


class AutowireMode(Enum):
    """How unset dependencies of a bean are filled in"""
    NO = "no"
    BY_NAME = "by-name"
    BY_TYPE = "by-type"
    CONSTRUCTOR = "by-constructor"


class DependencyCheck(Enum):
    """Which unset writable members make population fail"""
    NONE = "none"
    SIMPLE = "simple"
    OBJECTS = "objects"
    ALL = "all"


@dataclass
class ValueHolder:
    """Constructor argument value with optional type and name hints"""
    value: Any
    type: Optional[Type] = None
    name: Optional[str] = None


class ConstructorArgumentValues:
    """Indexed and generic constructor argument values of a definition.

    Indexed values are bound to a parameter position. Generic values are
    matched by name, then by type, then in declaration order.

    Example::

        args = ConstructorArgumentValues()
        args.add_indexed(0, RuntimeBeanReference("db"))
        args.add_generic("localhost", name="host")
    """

    def __init__(self):
        self.indexed: Dict[int, ValueHolder] = {}
        self.generic: List[ValueHolder] = []

    def add_indexed(self, index: int, value: Any, type: Optional[type] = None,
                    name: Optional[str] = None) -> None:
        if index < 0:
            raise ValueError("Constructor argument index must not be negative")
        holder = value if isinstance(value, ValueHolder) else ValueHolder(value, type, name)
        existing = self.indexed.get(index)
        self.indexed[index] = _merge_holder(existing, holder)

    def add_generic(self, value: Any, type: Optional[type] = None,
                    name: Optional[str] = None) -> None:
        holder = value if isinstance(value, ValueHolder) else ValueHolder(value, type, name)
        if holder not in self.generic:
            self.generic.append(holder)

    def add_all(self, other: Optional['ConstructorArgumentValues']) -> None:
        """Copy all values of ``other`` into this instance.

        Indexed values of ``other`` replace (or merge into) values at the
        same index; generic values are appended unless already present.
        """
        if other is None:
            return
        for index, holder in other.indexed.items():
            self.add_indexed(index, copy.copy(holder))
        for holder in other.generic:
            self.add_generic(copy.copy(holder))

    def count(self) -> int:
        return len(self.indexed) + len(self.generic)

    def is_empty(self) -> bool:
        return not self.indexed and not self.generic

    def copy(self) -> 'ConstructorArgumentValues':
        result = ConstructorArgumentValues()
        result.add_all(self)
        return result

    def __eq__(self, other):
        if not isinstance(other, ConstructorArgumentValues):
            return NotImplemented
        return self.indexed == other.indexed and self.generic == other.generic

    def __repr__(self):
        return f"ConstructorArgumentValues(indexed={self.indexed!r}, generic={self.generic!r})"


def _merge_holder(existing: Optional[ValueHolder], new: ValueHolder) -> ValueHolder:
    if existing is None:
        return new
    if isinstance(new.value, Mergeable) and new.value.merge_enabled:
        return ValueHolder(new.value.merge(existing.value), new.type, new.name)
    return new


@dataclass
class LookupOverride:
    """Replace ``method_name`` with a method returning a bean lookup.

    If ``bean_name`` is None the bean is looked up by the return type
    annotation of the overridden method.
    """
    method_name: str
    bean_name: Optional[str] = None


@dataclass(eq=False)
class BeanDefinition:
    """Raw declarative description of a bean.

    Fields left at ``None`` (or empty) are inherited from the parent
    definition when the definition is merged.
    """
    bean_class: Optional[type] = None
    bean_class_name: Optional[str] = None
    parent_name: Optional[str] = None
    scope: str = SCOPE_DEFAULT
    abstract: bool = False
    lazy_init: Optional[bool] = None
    depends_on: List[str] = field(default_factory=list)
    autowire_mode: Optional[AutowireMode] = None
    dependency_check: Optional[DependencyCheck] = None
    autowire_candidate: bool = True
    primary: bool = False
    property_values: Dict[str, Any] = field(default_factory=dict)
    constructor_args: ConstructorArgumentValues = field(default_factory=ConstructorArgumentValues)
    factory_bean_name: Optional[str] = None
    factory_method_name: Optional[str] = None
    instance_supplier: Optional[Callable[[], Any]] = None
    init_method_name: Optional[str] = None
    destroy_method_name: Optional[str] = None
    enforce_init_method: bool = True
    enforce_destroy_method: bool = True
    synthetic: bool = False
    lookup_overrides: List[LookupOverride] = field(default_factory=list)
    description: Optional[str] = None

    def is_singleton(self) -> bool:
        return self.scope in (SCOPE_SINGLETON, SCOPE_DEFAULT)

    def is_prototype(self) -> bool:
        return self.scope == SCOPE_PROTOTYPE

    def has_constructor_args(self) -> bool:
        return not self.constructor_args.is_empty()

    def validate(self) -> None:
        """Check combinations of settings that can never work.

        Raises:
            BeanDefinitionValidationError: When a factory method is combined
                with lookup overrides
        """
        if self.lookup_overrides and self.factory_method_name:
            raise BeanDefinitionValidationError(
                "Cannot combine factory method with container-generated method overrides: "
                "the factory method must create the concrete bean instance."
            )

    def target_description(self) -> str:
        if self.description:
            return self.description
        if self.bean_class is not None:
            return f"class [{self.bean_class.__module__}.{self.bean_class.__qualname__}]"
        if self.bean_class_name:
            return f"class [{self.bean_class_name}]"
        if self.factory_method_name:
            return f"factory method '{self.factory_method_name}'"
        return "anonymous definition"


@dataclass(eq=False)
class RootBeanDefinition(BeanDefinition):
    """Merged definition with creation caches.

    The declarative fields are never changed after merging. The fields
    below them are caches filled in lazily while creating beans.
    """
    stale: bool = False
    resolved_target_type: Optional[type] = None
    resolved_factory_return_type: Optional[type] = None
    resolved_executable: Any = None
    resolved_destroy_method_name: Optional[str] = None
    is_factory_bean: Optional[bool] = None
    post_processed: bool = False
    before_instantiation_resolved: Optional[bool] = None
    lookup_subclass: Optional[type] = None
    post_processing_lock: Any = field(default_factory=threading.Lock, repr=False, compare=False)
    constructor_lock: Any = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def from_definition(cls, source: BeanDefinition) -> 'RootBeanDefinition':
        """Deep-copy the declarative part of ``source`` into a new root.

        Value objects held in properties and constructor arguments are
        copied so that merging never mutates the source definition.
        """
        root = cls()
        for name in _DECLARATIVE_FIELDS:
            setattr(root, name, getattr(source, name))
        root.depends_on = list(source.depends_on)
        root.property_values = {k: _copy_value(v) for k, v in source.property_values.items()}
        root.constructor_args = ConstructorArgumentValues()
        for index, holder in source.constructor_args.indexed.items():
            root.constructor_args.indexed[index] = ValueHolder(_copy_value(holder.value), holder.type, holder.name)
        for holder in source.constructor_args.generic:
            root.constructor_args.generic.append(ValueHolder(_copy_value(holder.value), holder.type, holder.name))
        root.lookup_overrides = list(source.lookup_overrides)
        return root

    def override_from(self, other: BeanDefinition) -> None:
        """Apply the settings declared on a child definition.

        Declared child fields replace, unset child fields keep the parent's
        value. Mergeable collections with ``merge_enabled`` are combined with
        the parent's collection instead of replacing it.
        """
        if other.bean_class is not None:
            self.bean_class = other.bean_class
            self.bean_class_name = None
        elif other.bean_class_name:
            self.bean_class_name = other.bean_class_name
            self.bean_class = None
        if other.scope:
            self.scope = other.scope
        self.abstract = other.abstract
        if other.lazy_init is not None:
            self.lazy_init = other.lazy_init
        if other.factory_bean_name:
            self.factory_bean_name = other.factory_bean_name
        if other.factory_method_name:
            self.factory_method_name = other.factory_method_name
        if other.autowire_mode is not None:
            self.autowire_mode = other.autowire_mode
        if other.dependency_check is not None:
            self.dependency_check = other.dependency_check
        if other.depends_on:
            self.depends_on = list(other.depends_on)
        self.autowire_candidate = other.autowire_candidate
        self.primary = other.primary
        if other.instance_supplier is not None:
            self.instance_supplier = other.instance_supplier
        if other.init_method_name:
            self.init_method_name = other.init_method_name
            self.enforce_init_method = other.enforce_init_method
        if other.destroy_method_name:
            self.destroy_method_name = other.destroy_method_name
            self.enforce_destroy_method = other.enforce_destroy_method
        self.synthetic = other.synthetic
        if other.description:
            self.description = other.description

        self.constructor_args.add_all(other.constructor_args)

        for name, value in other.property_values.items():
            self.property_values[name] = _merge_if_required(value, self.property_values.get(name))

        for override in other.lookup_overrides:
            self.lookup_overrides = [o for o in self.lookup_overrides if o.method_name != override.method_name]
            self.lookup_overrides.append(override)

    @property
    def resolved_autowire_mode(self) -> AutowireMode:
        return self.autowire_mode or AutowireMode.NO

    @property
    def resolved_dependency_check(self) -> DependencyCheck:
        return self.dependency_check or DependencyCheck.NONE


_DECLARATIVE_FIELDS: Tuple[str, ...] = (
    "bean_class", "bean_class_name", "parent_name", "scope", "abstract", "lazy_init",
    "autowire_mode", "dependency_check", "autowire_candidate", "primary",
    "factory_bean_name", "factory_method_name", "instance_supplier",
    "init_method_name", "destroy_method_name", "enforce_init_method",
    "enforce_destroy_method", "synthetic", "description",
)


def _copy_value(value: Any) -> Any:
    if isinstance(value, Mergeable):
        return value.copy()
    return value


def _merge_if_required(new: Any, existing: Any) -> Any:
    if isinstance(new, Mergeable) and new.merge_enabled:
        return new.merge(existing)
    return new
