"""
BeanDefinitionBuilder

This module provides a fluent builder for ``BeanDefinition`` objects, for
registering beans in code without spelling out every field.

The builder performs:
- Property and constructor argument collection (literal values and
  references to other beans)
- Scope, laziness, autowiring and lifecycle method settings
- Definition validation on ``build()``

Example::

    registry.register_definition("service", (
        BeanDefinitionBuilder.generic(Service)
        .constructor_arg(ref("repository"))
        .property("timeout", 30)
        .init_method("start")
        .destroy_method("stop")
        .build()
    ))

    registry.register_definition("fast_service", (
        BeanDefinitionBuilder.child("service")
        .property("timeout", 5)
        .build()
    ))
"""

from typing import Any, Optional, Type

from .definition import (
    AutowireMode,
    BeanDefinition,
    DependencyCheck,
    LookupOverride,
    SCOPE_PROTOTYPE,
)
from .values import RuntimeBeanReference


class BeanDefinitionBuilder:
    """Fluent builder for a single ``BeanDefinition``.

    Every setter returns the builder itself so calls can be chained.
    Constructor arguments added with ``constructor_arg`` get consecutive
    indexes in the order they are added.

    Attributes:
        _definition: The definition under construction
        _constructor_index: Index of the next indexed constructor argument
    """

    def __init__(self, definition: BeanDefinition):
        self._definition = definition
        self._constructor_index = 0

    @classmethod
    def generic(cls, bean_class: Optional[Type] = None) -> 'BeanDefinitionBuilder':
        """Start a definition for ``bean_class``.

        Args:
            bean_class: The class to instantiate, or a dotted type name
                resolved lazily (optional when a factory bean and factory
                method are set later)

        Returns:
            A new builder

        Example::

            BeanDefinitionBuilder.generic(Widget).build()
            BeanDefinitionBuilder.generic("myapp.widgets.Widget").build()
        """
        if isinstance(bean_class, str):
            return cls(BeanDefinition(bean_class_name=bean_class))
        return cls(BeanDefinition(bean_class=bean_class))

    @classmethod
    def child(cls, parent_name: str) -> 'BeanDefinitionBuilder':
        """Start a definition inheriting the settings of ``parent_name``."""
        return cls(BeanDefinition(parent_name=parent_name))

    def property(self, name: str, value: Any) -> 'BeanDefinitionBuilder':
        """Set the property ``name`` (may be a nested path like ``"pool.size"``)."""
        self._definition.property_values[name] = value
        return self

    def reference(self, name: str, bean_name: str) -> 'BeanDefinitionBuilder':
        """Set the property ``name`` to the bean named ``bean_name``."""
        self._definition.property_values[name] = RuntimeBeanReference(bean_name)
        return self

    def constructor_arg(self, value: Any, type: Optional[Type] = None,
                        name: Optional[str] = None) -> 'BeanDefinitionBuilder':
        """Add the next indexed constructor argument.

        Args:
            value: Literal value, reference or inner definition
            type: Declared parameter type the argument is meant for (optional)
            name: Parameter name the argument is meant for (optional)
        """
        self._definition.constructor_args.add_indexed(self._constructor_index, value, type, name)
        self._constructor_index += 1
        return self

    def constructor_ref(self, bean_name: str) -> 'BeanDefinitionBuilder':
        return self.constructor_arg(RuntimeBeanReference(bean_name))

    def scope(self, scope: str) -> 'BeanDefinitionBuilder':
        self._definition.scope = scope
        return self

    def prototype(self) -> 'BeanDefinitionBuilder':
        return self.scope(SCOPE_PROTOTYPE)

    def lazy(self, lazy_init: bool = True) -> 'BeanDefinitionBuilder':
        self._definition.lazy_init = lazy_init
        return self

    def abstract(self, abstract: bool = True) -> 'BeanDefinitionBuilder':
        self._definition.abstract = abstract
        return self

    def depends_on(self, *bean_names: str) -> 'BeanDefinitionBuilder':
        """Create the named beans before this one, and destroy this one first."""
        self._definition.depends_on.extend(bean_names)
        return self

    def autowire(self, mode: AutowireMode) -> 'BeanDefinitionBuilder':
        self._definition.autowire_mode = mode
        return self

    def autowire_candidate(self, candidate: bool = True) -> 'BeanDefinitionBuilder':
        self._definition.autowire_candidate = candidate
        return self

    def dependency_check(self, check: DependencyCheck) -> 'BeanDefinitionBuilder':
        self._definition.dependency_check = check
        return self

    def primary(self, primary: bool = True) -> 'BeanDefinitionBuilder':
        self._definition.primary = primary
        return self

    def factory_method(self, method_name: str,
                       factory_bean_name: Optional[str] = None) -> 'BeanDefinitionBuilder':
        """Create the bean by calling a factory method.

        Args:
            method_name: Name of the method to call
            factory_bean_name: Bean holding the method; when omitted the
                method is a static or class method of the bean class

        Example::

            # Clock.system() is a classmethod
            BeanDefinitionBuilder.generic(Clock).factory_method("system").build()

            # connections.open() is a method of the "connections" bean
            BeanDefinitionBuilder.generic().factory_method("open", "connections").build()
        """
        self._definition.factory_method_name = method_name
        self._definition.factory_bean_name = factory_bean_name
        return self

    def supplier(self, supplier) -> 'BeanDefinitionBuilder':
        """Create the bean by calling ``supplier()`` instead of a constructor."""
        self._definition.instance_supplier = supplier
        return self

    def init_method(self, method_name: str, enforce: bool = True) -> 'BeanDefinitionBuilder':
        self._definition.init_method_name = method_name
        self._definition.enforce_init_method = enforce
        return self

    def destroy_method(self, method_name: str, enforce: bool = True) -> 'BeanDefinitionBuilder':
        self._definition.destroy_method_name = method_name
        self._definition.enforce_destroy_method = enforce
        return self

    def lookup(self, method_name: str, bean_name: Optional[str] = None) -> 'BeanDefinitionBuilder':
        """Override ``method_name`` to return a fresh lookup of ``bean_name``.

        Without ``bean_name`` the bean is looked up by the method's return
        type annotation.
        """
        self._definition.lookup_overrides.append(LookupOverride(method_name, bean_name))
        return self

    def description(self, description: str) -> 'BeanDefinitionBuilder':
        self._definition.description = description
        return self

    def build(self) -> BeanDefinition:
        """Validate and return the definition.

        Raises:
            BeanDefinitionValidationError: When the settings cannot work together
        """
        self._definition.validate()
        return self._definition
