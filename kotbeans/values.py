"""
Values

Declarative value types that may appear in property values and
constructor arguments. The value resolver turns each of them into a live
object when a bean is created.

Example::

    definition.property_values["repository"] = RuntimeBeanReference("repository")
    definition.property_values["hosts"] = ManagedList(["a", "b"], merge_enabled=True)
"""

from typing import Any, Iterable, Optional, Tuple, Type


class NullBean:
    """Stand-in stored by the factory when a bean resolves to ``None``.

    Callers never see it: ``get_bean()`` returns ``None`` instead.
    """

    _instance: Optional['NullBean'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "null"


NULL_BEAN = NullBean()


class RuntimeBeanReference:
    """Reference to another bean, by name or by type.

    Attributes:
        bean_name: Name of the referenced bean
        bean_type: Type to look up when no name is given
        to_parent: Only consult the parent factory
    """

    def __init__(self, bean_name: Optional[str] = None, bean_type: Optional[Type] = None,
                 to_parent: bool = False):
        if bean_name is None and bean_type is None:
            raise ValueError("A bean reference needs a bean name or a bean type")
        self.bean_name = bean_name
        self.bean_type = bean_type
        self.to_parent = to_parent

    def __eq__(self, other):
        return (isinstance(other, RuntimeBeanReference)
                and self.bean_name == other.bean_name
                and self.bean_type == other.bean_type
                and self.to_parent == other.to_parent)

    def __hash__(self):
        return hash((self.bean_name, self.bean_type, self.to_parent))

    def __repr__(self):
        target = self.bean_name if self.bean_name is not None else self.bean_type.__name__
        return f"<{target}>" if not self.to_parent else f"<parent:{target}>"


def ref(bean_name: str, to_parent: bool = False) -> RuntimeBeanReference:
    """Shorthand for ``RuntimeBeanReference(bean_name)``."""
    return RuntimeBeanReference(bean_name, to_parent=to_parent)


class RuntimeBeanNameReference:
    """Reference that resolves to the (validated) bean name itself."""

    def __init__(self, bean_name: str):
        self.bean_name = bean_name

    def __eq__(self, other):
        return isinstance(other, RuntimeBeanNameReference) and self.bean_name == other.bean_name

    def __hash__(self):
        return hash(self.bean_name)

    def __repr__(self):
        return f"<name:{self.bean_name}>"


class TypedStringValue:
    """String literal with an optional conversion target.

    The target may be given as a type or as a dotted type name; a type name
    is resolved once through the type resolver and cached on the value.
    ``dynamic`` marks values whose evaluation result must not be cached.
    """

    def __init__(self, value: Optional[str], target_type: Optional[Type] = None,
                 target_type_name: Optional[str] = None, dynamic: bool = False):
        self.value = value
        self.target_type = target_type
        self.target_type_name = target_type_name
        self.dynamic = dynamic

    def has_target_type(self) -> bool:
        return self.target_type is not None

    def __eq__(self, other):
        return (isinstance(other, TypedStringValue)
                and self.value == other.value
                and self.target_type == other.target_type
                and self.target_type_name == other.target_type_name)

    def __hash__(self):
        return hash((self.value, self.target_type, self.target_type_name))

    def __repr__(self):
        return f"TypedStringValue({self.value!r})"


class BeanDefinitionHolder:
    """Inner bean definition with an explicit name and aliases."""

    def __init__(self, definition, bean_name: str, aliases: Iterable[str] = ()):
        self.definition = definition
        self.bean_name = bean_name
        self.aliases: Tuple[str, ...] = tuple(aliases)

    def __repr__(self):
        return f"BeanDefinitionHolder({self.bean_name!r})"


class Mergeable:
    """Mixin for collection values that can merge with a parent's value."""

    merge_enabled: bool = False

    def merge(self, parent: Any) -> Any:
        raise NotImplementedError

    def copy(self) -> 'Mergeable':
        raise NotImplementedError

    def _check_parent(self, parent: Any, expected: type) -> None:
        if parent is not None and not isinstance(parent, expected):
            raise ValueError(
                f"Cannot merge with object of type [{type(parent).__name__}]: "
                f"expected {expected.__name__}"
            )


class ManagedList(Mergeable, list):
    """Ordered collection of declarative values; resolves to a ``list``."""

    def __init__(self, items: Iterable[Any] = (), merge_enabled: bool = False,
                 element_type_name: Optional[str] = None):
        list.__init__(self, items)
        self.merge_enabled = merge_enabled
        self.element_type_name = element_type_name

    def merge(self, parent: Any) -> 'ManagedList':
        """Return parent items followed by the items of this list."""
        if not self.merge_enabled:
            raise ValueError("Not allowed to merge when the 'merge_enabled' property is False")
        self._check_parent(parent, list)
        merged = self.copy()
        merged[:] = list(parent or ()) + list(self)
        return merged

    def copy(self) -> 'ManagedList':
        return type(self)(self, self.merge_enabled, self.element_type_name)

    def __eq__(self, other):
        return list.__eq__(self, other)

    def __hash__(self):
        return id(self)

    def __repr__(self):
        return f"{type(self).__name__}({list.__repr__(self)})"


class ManagedArray(ManagedList):
    """Fixed-size collection of declarative values; resolves to a ``tuple``.

    The element type name, if set, is resolved once and cached in
    ``resolved_element_type``.
    """

    def __init__(self, items: Iterable[Any] = (), merge_enabled: bool = False,
                 element_type_name: Optional[str] = None,
                 element_type: Optional[Type] = None):
        super().__init__(items, merge_enabled, element_type_name)
        self.resolved_element_type: Optional[Type] = element_type

    def copy(self) -> 'ManagedArray':
        result = ManagedArray(self, self.merge_enabled, self.element_type_name)
        result.resolved_element_type = self.resolved_element_type
        return result


class ManagedSet(Mergeable, list):
    """Unique declarative values in insertion order; resolves to a ``set``."""

    def __init__(self, items: Iterable[Any] = (), merge_enabled: bool = False,
                 element_type_name: Optional[str] = None):
        list.__init__(self)
        for item in items:
            if item not in self:
                self.append(item)
        self.merge_enabled = merge_enabled
        self.element_type_name = element_type_name

    def merge(self, parent: Any) -> 'ManagedSet':
        """Return parent items followed by the new items of this set."""
        if not self.merge_enabled:
            raise ValueError("Not allowed to merge when the 'merge_enabled' property is False")
        self._check_parent(parent, (list, set, frozenset))
        return ManagedSet(list(parent or ()) + list(self), self.merge_enabled, self.element_type_name)

    def _check_parent(self, parent: Any, expected) -> None:
        if parent is not None and not isinstance(parent, expected):
            raise ValueError(f"Cannot merge with object of type [{type(parent).__name__}]")

    def copy(self) -> 'ManagedSet':
        return ManagedSet(self, self.merge_enabled, self.element_type_name)

    def __eq__(self, other):
        return list.__eq__(self, other)

    def __hash__(self):
        return id(self)

    def __repr__(self):
        return f"ManagedSet({list.__repr__(self)})"


class ManagedMap(Mergeable, dict):
    """Keyed declarative values; resolves to a ``dict``.

    Both keys and values may be declarative values.
    """

    def __init__(self, items: Any = (), merge_enabled: bool = False,
                 key_type_name: Optional[str] = None,
                 value_type_name: Optional[str] = None):
        dict.__init__(self, items)
        self.merge_enabled = merge_enabled
        self.key_type_name = key_type_name
        self.value_type_name = value_type_name

    def merge(self, parent: Any) -> 'ManagedMap':
        """Return the parent entries overlaid with the entries of this map."""
        if not self.merge_enabled:
            raise ValueError("Not allowed to merge when the 'merge_enabled' property is False")
        self._check_parent(parent, dict)
        merged = ManagedMap(parent or {}, self.merge_enabled, self.key_type_name, self.value_type_name)
        merged.update(self)
        return merged

    def copy(self) -> 'ManagedMap':
        return ManagedMap(self, self.merge_enabled, self.key_type_name, self.value_type_name)

    def __eq__(self, other):
        return dict.__eq__(self, other)

    def __hash__(self):
        return id(self)

    def __repr__(self):
        return f"ManagedMap({dict.__repr__(self)})"

