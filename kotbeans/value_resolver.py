"""
ValueResolver

Turns the declarative values of a definition (references, inner
definitions, managed collections, typed strings) into the live objects
that are passed to constructors or set as properties.

Resolution is recursive over the shape of the value. Every failure is
reported as a ``BeanCreationError`` naming the owning bean and the full
argument path, e.g. ``property 'handlers' with key [2]``.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from .conversion import EvaluationContext
from .definition import BeanDefinition, RootBeanDefinition
from .exceptions import BeanCreationError, ConversionError, KotBeansError
from .factory_bean import FactoryBean
from .values import (
    BeanDefinitionHolder,
    ManagedArray,
    ManagedList,
    ManagedMap,
    ManagedSet,
    NullBean,
    RuntimeBeanNameReference,
    RuntimeBeanReference,
    TypedStringValue,
)

if TYPE_CHECKING:
    from .creation_context import CreationContext
    from .factory import KotBeansFactory

logger = logging.getLogger(__name__)

INNER_BEAN_PREFIX = "(inner bean)"
GENERATED_NAME_SEPARATOR = "#"


class ValueResolver:
    """Resolves declarative values for one bean.

    Attributes:
        factory: Factory used to look up and create referenced beans
        bean_name: Name of the bean whose values are resolved
        mbd: Merged definition of that bean
        ctx: Creation context of the calling chain

    Example (internal usage)::

        resolver = ValueResolver(factory, "widget", mbd, ctx)
        dep = resolver.resolve("property 'dep'", ref("gadget"))
    """

    def __init__(self, factory: 'KotBeansFactory', bean_name: str,
                 mbd: RootBeanDefinition, ctx: 'CreationContext'):
        self.factory = factory
        self.bean_name = bean_name
        self.mbd = mbd
        self.ctx = ctx

    def resolve(self, argument_name: str, value: Any) -> Any:
        """Return the live object for ``value``.

        Args:
            argument_name: Description of what is being resolved, used in
                error messages (``"property 'dep'"``)
            value: The declared value

        Raises:
            BeanCreationError: When any part of the value cannot be resolved
        """
        if isinstance(value, RuntimeBeanReference):
            return self._resolve_reference(argument_name, value)
        if isinstance(value, RuntimeBeanNameReference):
            return self._resolve_name_reference(argument_name, value)
        if isinstance(value, BeanDefinitionHolder):
            return self._resolve_inner_bean(argument_name, value.bean_name, value.definition)
        if isinstance(value, BeanDefinition):
            return self._resolve_inner_bean(argument_name, None, value)
        if isinstance(value, ManagedArray):
            return self._resolve_array(argument_name, value)
        if isinstance(value, ManagedList):
            return [self.resolve(f"{argument_name} with key [{i}]", item) for i, item in enumerate(value)]
        if isinstance(value, ManagedSet):
            resolved_set = set()
            for i, item in enumerate(value):
                element_name = f"{argument_name} with key [{i}]"
                resolved_set.add(self._hashable(element_name, self.resolve(element_name, item)))
            return resolved_set
        if isinstance(value, ManagedMap):
            resolved = {}
            for key, item in value.items():
                entry_name = f"{argument_name} with key [{key!r}]"
                resolved_key = self._hashable(entry_name, self.resolve(entry_name, key))
                resolved[resolved_key] = self.resolve(entry_name, item)
            return resolved
        if isinstance(value, TypedStringValue):
            return self._resolve_typed_string(argument_name, value)
        if isinstance(value, NullBean):
            return None
        if isinstance(value, str):
            return self.evaluate(value)
        return value

    def _hashable(self, element_name: str, element: Any) -> Any:
        try:
            hash(element)
        except TypeError as ex:
            raise BeanCreationError(
                self.bean_name,
                f"Cannot use unhashable value of type [{type(element).__name__}] as {element_name}",
                ex,
                property_path=element_name,
                description=self.mbd.description,
            ) from ex
        return element

    def evaluate(self, value: Optional[str]) -> Any:
        """Run ``value`` through the expression evaluator, if one is configured."""
        evaluator = self.factory.expression_evaluator
        if evaluator is None or value is None:
            return value
        return evaluator.evaluate(value, EvaluationContext(self.factory, self.bean_name, self.mbd.scope))

    def _resolve_reference(self, argument_name: str, reference: RuntimeBeanReference) -> Any:
        parent = self.factory.parent
        target = reference.bean_name if reference.bean_name is not None else reference.bean_type.__name__
        if reference.to_parent and parent is None:
            raise BeanCreationError(
                self.bean_name,
                f"Cannot resolve reference to bean '{target}' in parent factory: "
                "no parent factory available",
                property_path=argument_name,
            )
        try:
            if reference.bean_name is None:
                if reference.to_parent:
                    bean = parent.get_bean_by_type(reference.bean_type)
                else:
                    name, bean = self.factory.resolve_named_bean(reference.bean_type, self.ctx)
                    if name:
                        self.factory.registry.register_dependent_bean(name, self.bean_name)
            else:
                ref_name = self.evaluate(reference.bean_name)
                target = ref_name
                if reference.to_parent:
                    bean = parent.get_bean(ref_name)
                else:
                    bean = self.factory.do_get_bean(ref_name, ctx=self.ctx)
                    self.factory.registry.register_dependent_bean(
                        self.factory.transformed_bean_name(ref_name), self.bean_name
                    )
        except KotBeansError as ex:
            raise BeanCreationError(
                self.bean_name,
                f"Cannot resolve reference to bean '{target}' while setting {argument_name}",
                ex,
                property_path=argument_name,
                description=self.mbd.description,
            ) from ex
        return None if isinstance(bean, NullBean) else bean

    def _resolve_name_reference(self, argument_name: str, reference: RuntimeBeanNameReference) -> str:
        name = self.evaluate(reference.bean_name)
        if not self.factory.contains_bean(name):
            raise BeanCreationError(
                self.bean_name,
                f"Invalid bean name '{name}' in bean reference for {argument_name}",
                property_path=argument_name,
            )
        return name

    def _resolve_inner_bean(self, argument_name: str, inner_name: Optional[str],
                            definition: BeanDefinition) -> Any:
        name = inner_name or f"{INNER_BEAN_PREFIX}{GENERATED_NAME_SEPARATOR}{id(definition):x}"
        try:
            mbd = self.factory.get_merged_inner_definition(name, definition, self.mbd)
            actual_name = self._adapt_inner_bean_name(name) if mbd.is_singleton() else name
            self.factory.registry.register_contained_bean(actual_name, self.bean_name)
            for dependency in mbd.depends_on:
                self.factory.registry.register_dependent_bean(dependency, actual_name)
                self.factory.do_get_bean(dependency, ctx=self.ctx)
            inner = self.factory.creator.create_bean(actual_name, mbd, None, self.ctx)
            if isinstance(inner, FactoryBean):
                inner = self.factory.get_object_from_factory_bean(
                    inner, actual_name, not mbd.synthetic, self.ctx
                )
        except KotBeansError as ex:
            raise BeanCreationError(
                self.bean_name,
                f"Cannot create inner bean '{name}' of type "
                f"[{definition.target_description()}] while setting {argument_name}",
                ex,
                property_path=argument_name,
                description=self.mbd.description,
            ) from ex
        return None if isinstance(inner, NullBean) else inner

    def _adapt_inner_bean_name(self, name: str) -> str:
        actual = name
        counter = 0
        while self.factory.is_bean_name_in_use(actual):
            counter += 1
            actual = f"{name}{GENERATED_NAME_SEPARATOR}{counter}"
        return actual

    def _resolve_array(self, argument_name: str, value: ManagedArray) -> tuple:
        element_type = value.resolved_element_type
        if element_type is None and value.element_type_name:
            try:
                element_type = self.factory.type_resolver.resolve_type(value.element_type_name)
            except KotBeansError as ex:
                raise BeanCreationError(
                    self.bean_name, f"Error resolving array type for {argument_name}", ex,
                    property_path=argument_name,
                ) from ex
            value.resolved_element_type = element_type

        items = []
        for index, item in enumerate(value):
            path = f"{argument_name} with key [{index}]"
            resolved = self.resolve(path, item)
            if element_type is not None:
                resolved = self._convert(path, resolved, element_type)
            items.append(resolved)
        return tuple(items)

    def _resolve_typed_string(self, argument_name: str, value: TypedStringValue) -> Any:
        resolved = self.evaluate(value.value)
        target = value.target_type
        if target is None and value.target_type_name:
            try:
                target = self.factory.type_resolver.resolve_type(value.target_type_name)
            except KotBeansError as ex:
                raise BeanCreationError(
                    self.bean_name, f"Error converting typed String value for {argument_name}", ex,
                    property_path=argument_name,
                ) from ex
            value.target_type = target
        if target is None:
            return resolved
        return self._convert(argument_name, resolved, target)

    def _convert(self, argument_name: str, value: Any, target: Any) -> Any:
        try:
            return self.factory.type_converter.convert(value, target)
        except ConversionError as ex:
            raise BeanCreationError(
                self.bean_name, f"Error converting value for {argument_name}", ex,
                property_path=argument_name,
            ) from ex
