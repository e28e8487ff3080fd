"""
KotBeansFactory

This module provides the bean factory: it reads definitions from a
``DefinitionSource`` and creates, caches and destroys the beans they
describe. The control flow of a lookup is:

1. Strip the ``&`` prefix and resolve aliases to the canonical name
2. Return a finished (or, inside a circular reference, early) singleton
3. Delegate to the parent factory if there is no local definition
4. Merge the definition, create its depends-on beans first
5. Create the bean in its scope (singleton, prototype or custom)
6. Dereference factory beans and check the required type

All state lives in the factory instance; several factories (for example
a parent and a child) never share anything but what they pass each other
explicitly.

Example::

    registry = DefinitionRegistry()
    registry.register_definition("gadget", BeanDefinition(bean_class=Gadget))
    registry.register_definition("widget", BeanDefinition(
        bean_class=Widget,
        property_values={"dep": ref("gadget")},
    ))

    factory = KotBeansFactory(registry)
    widget = factory.get_bean("widget")
    assert widget.dep is factory.get_bean("gadget")
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Type, TypeVar, get_origin

from .aliases import AliasRegistry
from .config import FactoryConfig
from .conversion import ExpressionEvaluator, SimpleTypeConverter, TypeConverter
from .creation import BeanCreator
from .creation_context import CreationContext
from .definition import SCOPE_PROTOTYPE, SCOPE_SINGLETON, BeanDefinition, RootBeanDefinition
from .destruction import DisposableBeanAdapter
from .exceptions import (
    BeanCreationError,
    BeanIsAbstractError,
    BeanIsNotAFactoryError,
    BeanNotOfRequiredTypeError,
    CannotLoadBeanClassError,
    ConversionError,
    CurrentlyInCreationError,
    IllegalStateError,
    NoSuchBeanError,
    NoUniqueBeanError,
    ScopeNotActiveError,
)
from .factory_bean import FactoryBean, is_factory_dereference, transformed_bean_name
from .instantiation import ConstructorResolver
from .introspection import (
    DependencyDescriptor,
    IntrospectingTypeResolver,
    TypeResolver,
    _resolve_type_hints,
    collection_element,
    is_assignable,
    is_instance,
    is_simple_type,
    unwrap_optional,
)
from .merger import DefinitionMerger
from .post_processors import PostProcessorList
from .registry import SingletonRegistry
from .scope import Scope
from .source import DefinitionSource
from .values import NULL_BEAN, NullBean

logger = logging.getLogger(__name__)

T = TypeVar('T')


class KotBeansFactory:
    """Bean factory creating beans from the definitions of a source.

    Attributes:
        source: Where raw definitions come from
        parent: Factory consulted for names without a local definition
        config: Behavior switches, see ``FactoryConfig``
        registry: Singleton instances, dependency edges and disposables
        aliases: Alias names of this factory
        post_processors: Registered hooks, in registration order
        type_resolver: Answers constructor and member questions
        type_converter: Converts declared values to parameter types
        expression_evaluator: Optional evaluator for string values
    """

    def __init__(self, source: DefinitionSource,
                 parent: Optional['KotBeansFactory'] = None,
                 config: Optional[FactoryConfig] = None,
                 type_resolver: Optional[TypeResolver] = None,
                 type_converter: Optional[TypeConverter] = None,
                 expression_evaluator: Optional[ExpressionEvaluator] = None):
        """Create a factory over ``source``.

        Args:
            source: Definition source, only read by the factory
            parent: Parent factory (optional)
            config: Factory configuration (defaults to ``FactoryConfig()``)
            type_resolver: Type introspection (defaults to
                ``IntrospectingTypeResolver``)
            type_converter: Value conversion (defaults to
                ``SimpleTypeConverter``)
            expression_evaluator: Evaluator for string values (optional)
        """
        self.source = source
        self.parent = parent
        self.config = config or FactoryConfig()
        self.type_resolver = type_resolver or IntrospectingTypeResolver()
        self.type_converter = type_converter or SimpleTypeConverter()
        self.expression_evaluator = expression_evaluator

        self.registry = SingletonRegistry()
        self.aliases = AliasRegistry()
        self.post_processors = PostProcessorList()
        self.merger = DefinitionMerger(
            self.get_merged_definition,
            parent_lookup=parent.get_merged_definition if parent is not None else None,
            canonical_name=self.canonical_name,
            cache_enabled=self.config.cache_bean_metadata,
        )
        self.creator = BeanCreator(self)
        self.constructor_resolver = ConstructorResolver(self)

        self._scopes: Dict[str, Scope] = {}
        self._already_created: Dict[str, None] = {}
        self._factory_bean_objects: Dict[str, Any] = {}
        self._lock = threading.RLock()

        source.add_listener(self.reset_bean_definition)

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def canonical_name(self, name: str) -> str:
        return self.aliases.canonical_name(name)

    def transformed_bean_name(self, name: str) -> str:
        """Strip the factory dereference prefix and resolve aliases."""
        return self.canonical_name(transformed_bean_name(name))

    def register_alias(self, name: str, alias: str) -> None:
        """Register ``alias`` for the bean ``name``.

        Raises:
            IllegalStateError: When the alias would form a cycle
        """
        self.aliases.register_alias(name, alias)

    def get_aliases(self, name: str) -> List[str]:
        bean_name = self.transformed_bean_name(name)
        prefix = name[:len(name) - len(name.lstrip("&"))]
        aliases = [prefix + alias for alias in self.aliases.get_aliases(bean_name)]
        if bean_name != transformed_bean_name(name):
            aliases.insert(0, prefix + bean_name)
        return [a for a in aliases if a != name]

    def is_bean_name_in_use(self, name: str) -> bool:
        return (self.aliases.is_alias(name)
                or self.source.contains_definition(name)
                or self.registry.contains_singleton(name)
                or self.registry.has_dependent_bean(name))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @contextmanager
    def _creation_context(self) -> Iterator[CreationContext]:
        ctx = CreationContext.current(self)
        if ctx is not None:
            yield ctx
            return
        ctx = CreationContext()
        with ctx.activate(self):
            yield ctx

    def get_bean(self, name: str, required_type: Optional[Type[T]] = None,
                 args: Optional[Sequence[Any]] = None) -> Any:
        """Return the bean registered under ``name``.

        Args:
            name: Bean name or alias; prefix with ``&`` for the factory bean
                itself instead of its product
            required_type: Type the bean must have (optional)
            args: Explicit constructor or factory-method arguments, for
                prototypes (optional)

        Returns:
            The bean, or None for a bean that is a null value

        Raises:
            NoSuchBeanError: When there is no such bean
            BeanCreationError: When the bean cannot be created
            BeanNotOfRequiredTypeError: When the bean has the wrong type

        Example::

            widget = factory.get_bean("widget")
            widget = factory.get_bean("widget", Widget)
            factory_bean = factory.get_bean("&connection")
        """
        with self._creation_context() as ctx:
            bean = self.do_get_bean(name, required_type, args, ctx=ctx)
        return None if isinstance(bean, NullBean) else bean

    def __getitem__(self, name: str) -> Any:
        return self.get_bean(name)

    def do_get_bean(self, name: str, required_type: Optional[type] = None,
                    args: Optional[Sequence[Any]] = None, type_check_only: bool = False,
                    ctx: Optional[CreationContext] = None) -> Any:
        """Internal lookup continuing the creation chain ``ctx``.

        Returns ``NULL_BEAN`` rather than None for null beans.
        """
        if ctx is None:
            ctx = CreationContext()
        bean_name = self.transformed_bean_name(name)

        shared = self.registry.get_singleton(
            bean_name, allow_early_reference=ctx.is_singleton_in_creation(bean_name)
        )
        if shared is not None and args is None:
            if ctx.is_singleton_in_creation(bean_name):
                logger.debug("Returning eagerly cached instance of singleton bean '%s' that is "
                             "not fully initialized yet - a consequence of a circular reference",
                             bean_name)
            bean = self.get_object_for_bean_instance(shared, name, bean_name, None, ctx)
            return self._adapt_bean_instance(name, bean, required_type)

        if ctx.is_prototype_in_creation(bean_name):
            raise CurrentlyInCreationError(bean_name, cycle=ctx.describe_cycle(bean_name))

        if self.parent is not None and not self.source.contains_definition(bean_name):
            original = ("&" if is_factory_dereference(name) else "") + bean_name
            bean = self.parent.get_bean(original, required_type, args)
            return NULL_BEAN if bean is None else bean

        if not type_check_only:
            self._mark_bean_as_created(bean_name)
        try:
            mbd = self.get_merged_definition(bean_name)
            if mbd.abstract:
                raise BeanIsAbstractError(bean_name)

            for dependency in mbd.depends_on:
                self._create_depends_on(bean_name, dependency, ctx)

            if mbd.is_singleton():
                shared = self.registry.get_or_create_singleton(
                    bean_name, lambda: self._create_singleton(bean_name, mbd, args, ctx), ctx
                )
                bean = self.get_object_for_bean_instance(shared, name, bean_name, mbd, ctx)
            elif mbd.is_prototype():
                ctx.before_prototype_creation(bean_name)
                try:
                    prototype = self.creator.create_bean(bean_name, mbd, args, ctx)
                finally:
                    ctx.after_prototype_creation(bean_name)
                bean = self.get_object_for_bean_instance(prototype, name, bean_name, mbd, ctx)
            else:
                bean = self._get_scoped_bean(name, bean_name, mbd, args, ctx)
        except Exception:
            self._cleanup_after_creation_failure(bean_name)
            raise
        return self._adapt_bean_instance(name, bean, required_type)

    def _create_singleton(self, bean_name: str, mbd: RootBeanDefinition,
                          args: Optional[Sequence[Any]], ctx: CreationContext) -> Any:
        try:
            return self.creator.create_bean(bean_name, mbd, args, ctx)
        except Exception:
            # Remove anything the failed attempt left behind, e.g. a disposable
            self.registry.destroy_singleton(bean_name)
            raise

    def _create_depends_on(self, bean_name: str, dependency: str, ctx: CreationContext) -> None:
        dependency = self.canonical_name(dependency)
        if self.registry.is_dependent(bean_name, dependency):
            raise BeanCreationError(
                bean_name,
                f"Circular depends-on relationship between '{bean_name}' and '{dependency}'",
            )
        self.registry.register_dependent_bean(dependency, bean_name)
        try:
            self.do_get_bean(dependency, ctx=ctx)
        except NoSuchBeanError as ex:
            raise BeanCreationError(
                bean_name, f"'{bean_name}' depends on missing bean '{dependency}'", ex
            ) from ex

    def _get_scoped_bean(self, name: str, bean_name: str, mbd: RootBeanDefinition,
                         args: Optional[Sequence[Any]], ctx: CreationContext) -> Any:
        scope = self.get_registered_scope(mbd.scope)

        def create():
            ctx.before_prototype_creation(bean_name)
            try:
                return self.creator.create_bean(bean_name, mbd, args, ctx)
            finally:
                ctx.after_prototype_creation(bean_name)

        try:
            scoped = scope.get(bean_name, create)
        except IllegalStateError as ex:
            raise ScopeNotActiveError(
                bean_name, f"Scope '{mbd.scope}' is not active for the current thread", ex
            ) from ex
        return self.get_object_for_bean_instance(scoped, name, bean_name, mbd, ctx)

    def _adapt_bean_instance(self, name: str, bean: Any, required_type: Optional[type]) -> Any:
        if required_type is None or isinstance(bean, NullBean) or is_instance(bean, required_type):
            return bean
        try:
            return self.type_converter.convert(bean, required_type)
        except ConversionError as ex:
            raise BeanNotOfRequiredTypeError(name, required_type, type(bean)) from ex

    def _mark_bean_as_created(self, bean_name: str) -> None:
        if bean_name in self._already_created:
            return
        with self._lock:
            if bean_name not in self._already_created:
                # Pick up metadata changes made before the first creation
                self.merger.mark_stale(bean_name)
                self._already_created[bean_name] = None

    def _cleanup_after_creation_failure(self, bean_name: str) -> None:
        with self._lock:
            self._already_created.pop(bean_name, None)

    def remove_singleton_if_created_for_type_check_only(self, bean_name: str) -> bool:
        """Drop a singleton that was only created to check its type."""
        if bean_name in self._already_created:
            return False
        self.registry.remove_singleton(bean_name)
        return True

    def has_been_created(self, name: str) -> bool:
        return self.transformed_bean_name(name) in self._already_created

    # ------------------------------------------------------------------
    # Factory beans
    # ------------------------------------------------------------------

    def get_object_for_bean_instance(self, instance: Any, name: str, bean_name: str,
                                     mbd: Optional[RootBeanDefinition],
                                     ctx: CreationContext) -> Any:
        """Return ``instance`` or, for a factory bean, its product.

        Raises:
            BeanIsNotAFactoryError: When ``name`` asks for a factory but
                ``instance`` is not one
        """
        if is_factory_dereference(name):
            if isinstance(instance, NullBean):
                return instance
            if not isinstance(instance, FactoryBean):
                raise BeanIsNotAFactoryError(bean_name, type(instance))
            if mbd is not None:
                mbd.is_factory_bean = True
            return instance

        if not isinstance(instance, FactoryBean):
            return instance

        product = None
        if mbd is not None:
            mbd.is_factory_bean = True
        else:
            product = self._factory_bean_objects.get(bean_name)
        if product is None:
            if mbd is None and self.source.contains_definition(bean_name):
                mbd = self.get_merged_definition(bean_name)
            synthetic = mbd is not None and mbd.synthetic
            product = self.get_object_from_factory_bean(instance, bean_name, not synthetic, ctx)
        return product

    def get_object_from_factory_bean(self, factory_bean: FactoryBean, bean_name: str,
                                     should_post_process: bool, ctx: CreationContext) -> Any:
        """Return the product of ``factory_bean``, cached for singleton products."""
        if not (factory_bean.is_singleton() and self.registry.contains_singleton(bean_name)):
            product = self._do_get_object(factory_bean, bean_name)
            if should_post_process and not isinstance(product, NullBean):
                product = self._post_process_factory_product(product, bean_name)
            return product

        with self._lock:
            product = self._factory_bean_objects.get(bean_name)
            if product is not None:
                return product
            product = self._do_get_object(factory_bean, bean_name)
            # get_object() may have called back into the factory for the same product
            existing = self._factory_bean_objects.get(bean_name)
            if existing is not None:
                return existing
            if should_post_process and not isinstance(product, NullBean):
                product = self._post_process_factory_product(product, bean_name)
            if self.registry.contains_singleton(bean_name):
                self._factory_bean_objects[bean_name] = product
            return product

    def _do_get_object(self, factory_bean: FactoryBean, bean_name: str) -> Any:
        try:
            product = factory_bean.get_object()
        except BeanCreationError:
            raise
        except Exception as ex:
            raise BeanCreationError(bean_name, "FactoryBean threw exception on object creation", ex) from ex
        return NULL_BEAN if product is None else product

    def _post_process_factory_product(self, product: Any, bean_name: str) -> Any:
        try:
            return self.creator.apply_after_initialization(product, bean_name)
        except Exception as ex:
            raise BeanCreationError(
                bean_name, "Post-processing of FactoryBean's singleton object failed", ex
            ) from ex

    def is_factory_bean(self, name: str) -> bool:
        """Whether the bean ``name`` is a ``FactoryBean``.

        Raises:
            NoSuchBeanError: When there is no such bean
        """
        bean_name = self.transformed_bean_name(name)
        instance = self.registry.get_singleton(bean_name)
        if instance is not None:
            return isinstance(instance, FactoryBean)
        if self.parent is not None and not self.source.contains_definition(bean_name):
            return self.parent.is_factory_bean(name)
        return self._is_factory_bean_definition(bean_name, self.get_merged_definition(bean_name))

    def _is_factory_bean_definition(self, bean_name: str, mbd: RootBeanDefinition) -> bool:
        if mbd.is_factory_bean is None:
            predicted = self.predict_bean_type(bean_name, mbd)
            mbd.is_factory_bean = predicted is not None and issubclass(predicted, FactoryBean)
        return mbd.is_factory_bean

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def get_merged_definition(self, name: str) -> RootBeanDefinition:
        """Return the merged definition of ``name``, local or from the parent.

        Raises:
            NoSuchBeanError: When neither this factory nor a parent defines it
            DefinitionStoreError: When the definition cannot be merged
        """
        bean_name = self.canonical_name(name)
        cached = self.merger.get_cached(bean_name)
        if cached is not None and not cached.stale:
            return cached
        raw = self.source.get_definition(bean_name)
        if raw is None:
            if self.parent is not None:
                return self.parent.get_merged_definition(bean_name)
            raise NoSuchBeanError(bean_name)
        return self.merger.get_merged_definition(bean_name, raw)

    def get_merged_inner_definition(self, name: str, definition: BeanDefinition,
                                    containing: BeanDefinition) -> RootBeanDefinition:
        return self.merger.get_merged_definition(name, definition, containing)

    def contains_bean_definition(self, name: str) -> bool:
        return self.source.contains_definition(name)

    def resolve_bean_class(self, mbd: RootBeanDefinition, bean_name: str) -> Optional[type]:
        """Return the bean class of ``mbd``, resolving its type name once.

        Raises:
            CannotLoadBeanClassError: When the type name cannot be resolved
        """
        if mbd.bean_class is not None:
            return mbd.bean_class
        if not mbd.bean_class_name:
            return None
        try:
            mbd.bean_class = self.type_resolver.resolve_type(mbd.bean_class_name)
        except CannotLoadBeanClassError as ex:
            raise CannotLoadBeanClassError(
                f"Cannot load class [{mbd.bean_class_name}]", bean_name, ex
            ) from ex
        return mbd.bean_class

    def predict_bean_type(self, bean_name: str, mbd: RootBeanDefinition) -> Optional[type]:
        """Predict the type of the raw instance ``mbd`` creates, if possible."""
        if mbd.resolved_target_type is not None:
            return mbd.resolved_target_type
        if mbd.factory_method_name:
            return self._factory_method_return_type(bean_name, mbd)
        try:
            return self.resolve_bean_class(mbd, bean_name)
        except CannotLoadBeanClassError:
            logger.debug("Could not predict type of bean '%s'", bean_name, exc_info=True)
            return None

    def _factory_method_return_type(self, bean_name: str, mbd: RootBeanDefinition) -> Optional[type]:
        if mbd.resolved_factory_return_type is not None:
            return mbd.resolved_factory_return_type
        if mbd.factory_bean_name:
            owner_name = self.transformed_bean_name(mbd.factory_bean_name)
            owner_type = self.get_type(owner_name)
        else:
            owner_type = self.resolve_bean_class(mbd, bean_name)
        if owner_type is None:
            return None
        return_types = set()
        for klass in owner_type.__mro__:
            candidate = vars(klass).get(mbd.factory_method_name)
            if isinstance(candidate, (classmethod, staticmethod)):
                candidate = candidate.__func__
            if callable(candidate):
                return_types.add(_resolve_type_hints(candidate).get("return"))
                break
        if len(return_types) == 1:
            (return_type,) = return_types
            if isinstance(return_type, type):
                mbd.resolved_factory_return_type = return_type
                return return_type
        return None

    def reset_bean_definition(self, name: str) -> None:
        """Forget everything derived from the definition ``name``.

        Called by the definition source when the definition is replaced
        or removed: drops the merged definition and destroys the
        singleton, then resets child definitions of it.
        """
        logger.debug("Resetting bean definition '%s'", name)
        self.merger.remove(name)
        with self._lock:
            self._already_created.pop(name, None)
        self.destroy_singleton(name)
        for other in self.source.definition_names():
            raw = self.source.get_definition(other)
            if other != name and raw is not None and raw.parent_name == name:
                self.reset_bean_definition(other)

    # ------------------------------------------------------------------
    # Type matching
    # ------------------------------------------------------------------

    def get_type(self, name: str) -> Optional[type]:
        """Return the type of the bean ``name`` without creating it, if possible."""
        bean_name = self.transformed_bean_name(name)
        instance = self.registry.get_singleton(bean_name)
        if instance is not None and not isinstance(instance, NullBean):
            if isinstance(instance, FactoryBean) and not is_factory_dereference(name):
                return instance.get_object_type()
            return type(instance)
        if self.parent is not None and not self.source.contains_definition(bean_name):
            return self.parent.get_type(name)
        mbd = self.get_merged_definition(bean_name)
        predicted = self.predict_bean_type(bean_name, mbd)
        if predicted is not None and issubclass(predicted, FactoryBean) and not is_factory_dereference(name):
            return self._type_for_factory_bean(bean_name, mbd, CreationContext.current(self) or CreationContext())
        return predicted

    def is_type_match(self, name: str, type_to_match: Any) -> bool:
        """Whether ``get_bean(name)`` would return an instance of ``type_to_match``."""
        with self._creation_context() as ctx:
            return self._is_type_match(name, type_to_match, ctx)

    def _is_type_match(self, name: str, type_to_match: Any, ctx: CreationContext,
                       allow_eager_init: bool = True) -> bool:
        bean_name = self.transformed_bean_name(name)
        dereference = is_factory_dereference(name)

        instance = self.registry.get_singleton(bean_name)
        if instance is not None and not isinstance(instance, NullBean):
            if isinstance(instance, FactoryBean):
                if not dereference:
                    return is_assignable(type_to_match, instance.get_object_type())
                return is_instance(instance, type_to_match)
            return not dereference and is_instance(instance, type_to_match)
        if self.registry.contains_singleton(bean_name) and not self.source.contains_definition(bean_name):
            return False

        if self.parent is not None and not self.source.contains_definition(bean_name):
            return self.parent.is_type_match(name, type_to_match)

        mbd = self.get_merged_definition(bean_name)
        predicted = self.predict_bean_type(bean_name, mbd)
        if predicted is None:
            return False
        if issubclass(predicted, FactoryBean):
            if dereference:
                return is_assignable(type_to_match, predicted)
            if not allow_eager_init:
                return False
            return is_assignable(type_to_match, self._type_for_factory_bean(bean_name, mbd, ctx))
        return not dereference and is_assignable(type_to_match, predicted)

    def _type_for_factory_bean(self, bean_name: str, mbd: RootBeanDefinition,
                               ctx: CreationContext) -> Optional[type]:
        if not (self.config.allow_eager_init_for_type_matching and mbd.is_singleton()):
            return None
        try:
            factory_bean = self.do_get_bean("&" + bean_name, type_check_only=True, ctx=ctx)
        except BeanCreationError as ex:
            if not _caused_by(ex, CurrentlyInCreationError):
                raise
            logger.info("Bean currently in creation on FactoryBean type check: %s", ex)
            ctx.on_suppressed_error(ex)
            return None
        if isinstance(factory_bean, FactoryBean):
            return factory_bean.get_object_type()
        return None

    def get_bean_names_for_type(self, bean_type: Any, include_non_singletons: bool = True,
                                allow_eager_init: bool = True) -> List[str]:
        """Return the names of local beans matching ``bean_type``.

        Factory beans match with their product type; a factory bean
        itself matches as ``"&" + name``. Beans in creation that cannot be
        type-checked yet are skipped.
        """
        with self._creation_context() as ctx:
            return self._bean_names_for_type(bean_type, include_non_singletons, allow_eager_init, ctx)

    def _bean_names_for_type(self, bean_type: Any, include_non_singletons: bool,
                             allow_eager_init: bool, ctx: CreationContext) -> List[str]:
        result: List[str] = []
        for bean_name in self.source.definition_names():
            if self.aliases.is_alias(bean_name):
                continue
            try:
                mbd = self.get_merged_definition(bean_name)
                if mbd.abstract:
                    continue
                if not include_non_singletons and not mbd.is_singleton():
                    continue
                if self._is_type_match(bean_name, bean_type, ctx, allow_eager_init):
                    result.append(bean_name)
                elif (self._is_factory_bean_definition(bean_name, mbd)
                      and self._is_type_match("&" + bean_name, bean_type, ctx, allow_eager_init)):
                    result.append("&" + bean_name)
            except CannotLoadBeanClassError:
                logger.debug("Ignoring bean class loading failure for bean '%s'", bean_name, exc_info=True)
            except BeanCreationError as ex:
                if not _caused_by(ex, CurrentlyInCreationError):
                    raise
                logger.info("Ignoring match to currently created bean '%s': %s", bean_name, ex)
                ctx.on_suppressed_error(ex)

        for bean_name in self.registry.singleton_names():
            if bean_name in result or self.source.contains_definition(bean_name):
                continue
            instance = self.registry.get_singleton(bean_name)
            if isinstance(instance, FactoryBean):
                if is_assignable(bean_type, instance.get_object_type()):
                    result.append(bean_name)
                elif is_instance(instance, bean_type):
                    result.append("&" + bean_name)
            elif instance is not None and not isinstance(instance, NullBean) and is_instance(instance, bean_type):
                result.append(bean_name)
        return result

    def get_beans_of_type(self, bean_type: Type[T], include_non_singletons: bool = True,
                          allow_eager_init: bool = True) -> Dict[str, T]:
        """Return all local beans matching ``bean_type`` by name, in registration order."""
        result: Dict[str, T] = {}
        with self._creation_context() as ctx:
            for name in self._bean_names_for_type(bean_type, include_non_singletons, allow_eager_init, ctx):
                try:
                    bean = self.do_get_bean(name, ctx=ctx)
                except BeanCreationError as ex:
                    if not _caused_by(ex, CurrentlyInCreationError):
                        raise
                    logger.debug("Ignoring match to currently created bean '%s': %s", name, ex)
                    ctx.on_suppressed_error(ex)
                    continue
                if not isinstance(bean, NullBean):
                    result[name] = bean
        return result

    def get_bean_by_type(self, required_type: Type[T]) -> T:
        """Return the single bean matching ``required_type``.

        Raises:
            NoSuchBeanError: When no bean matches
            NoUniqueBeanError: When several beans match and none is primary
        """
        with self._creation_context() as ctx:
            _, bean = self.resolve_named_bean(required_type, ctx)
        return None if isinstance(bean, NullBean) else bean

    def resolve_named_bean(self, required_type: Any, ctx: CreationContext) -> Tuple[str, Any]:
        """Resolve the single bean of ``required_type`` and return ``(name, bean)``."""
        candidates = self._bean_names_for_type(required_type, True, True, ctx)
        if len(candidates) > 1:
            autowirable = [c for c in candidates if self._is_autowire_candidate(c)]
            if autowirable:
                candidates = autowirable
        if len(candidates) == 1:
            name = candidates[0]
            return name, self.do_get_bean(name, required_type, ctx=ctx)
        if len(candidates) > 1:
            primary = self._determine_primary_candidate(candidates, required_type)
            if primary is None:
                raise NoUniqueBeanError(required_type, candidates)
            return primary, self.do_get_bean(primary, required_type, ctx=ctx)
        if self.parent is not None:
            return "", self.parent.get_bean_by_type(required_type)
        raise NoSuchBeanError(required_type=required_type)

    def contains_bean(self, name: str) -> bool:
        if self.contains_local_bean(name):
            return True
        return self.parent is not None and self.parent.contains_bean(name)

    def contains_local_bean(self, name: str) -> bool:
        bean_name = self.transformed_bean_name(name)
        if self.registry.contains_singleton(bean_name) or self.source.contains_definition(bean_name):
            return not is_factory_dereference(name) or self.is_factory_bean(name)
        return False

    def is_singleton(self, name: str) -> bool:
        """Whether ``get_bean(name)`` always returns the same instance.

        Raises:
            NoSuchBeanError: When there is no such bean
        """
        bean_name = self.transformed_bean_name(name)
        instance = self.registry.get_singleton(bean_name)
        if instance is not None:
            if isinstance(instance, FactoryBean):
                return is_factory_dereference(name) or instance.is_singleton()
            return not is_factory_dereference(name)
        if self.parent is not None and not self.source.contains_definition(bean_name):
            return self.parent.is_singleton(name)
        mbd = self.get_merged_definition(bean_name)
        if not mbd.is_singleton():
            return False
        if self._is_factory_bean_definition(bean_name, mbd):
            if is_factory_dereference(name):
                return True
            factory_bean = self.get_bean("&" + bean_name)
            return factory_bean.is_singleton()
        return not is_factory_dereference(name)

    def is_prototype(self, name: str) -> bool:
        """Whether ``get_bean(name)`` returns a new instance each time."""
        bean_name = self.transformed_bean_name(name)
        if self.parent is not None and not self.source.contains_definition(bean_name):
            return self.parent.is_prototype(name)
        mbd = self.get_merged_definition(bean_name)
        if mbd.is_prototype():
            return not is_factory_dereference(name) or self._is_factory_bean_definition(bean_name, mbd)
        if is_factory_dereference(name) or not self._is_factory_bean_definition(bean_name, mbd):
            return False
        return not self.get_bean("&" + bean_name).is_singleton()

    def is_primary(self, name: str) -> bool:
        bean_name = self.transformed_bean_name(name)
        if self.source.contains_definition(bean_name):
            return self.get_merged_definition(bean_name).primary
        return self.parent is not None and self.parent.is_primary(bean_name)

    def _is_autowire_candidate(self, name: str) -> bool:
        bean_name = self.transformed_bean_name(name)
        if self.source.contains_definition(bean_name):
            return self.get_merged_definition(bean_name).autowire_candidate
        return True

    def _determine_primary_candidate(self, candidates: Sequence[str], required_type: Any) -> Optional[str]:
        primary = None
        for candidate in candidates:
            if self.is_primary(candidate):
                if primary is not None:
                    raise NoUniqueBeanError(
                        required_type, candidates,
                    )
                primary = candidate
        return primary

    # ------------------------------------------------------------------
    # Dependency resolution
    # ------------------------------------------------------------------

    def resolve_dependency(self, descriptor: DependencyDescriptor, requesting_bean_name: Optional[str],
                           autowired_names: List[str], ctx: CreationContext) -> Any:
        """Find the bean (or beans) to autowire for ``descriptor``.

        ``List[T]``, ``Set[T]``, ``Tuple[T, ...]`` and ``Dict[str, T]``
        receive every candidate of ``T``. ``Optional[T]`` is never required.

        Args:
            descriptor: What to autowire
            requesting_bean_name: Bean the dependency is injected into
            autowired_names: Receives the names of the beans chosen
            ctx: Creation context of the calling chain

        Returns:
            The value to inject, or None when the dependency is not
            required and there is no candidate

        Raises:
            NoSuchBeanError: When a required dependency has no candidate
            NoUniqueBeanError: When several candidates match and neither
                the primary flag nor the dependency name decides
        """
        annotation, optional = unwrap_optional(descriptor.annotation)
        required = descriptor.required and not optional

        container, element = collection_element(annotation)
        if container is not None and element is not None and not is_simple_type(element):
            names = self._find_autowire_candidates(requesting_bean_name, element, ctx)
            if not names:
                if required:
                    raise NoSuchBeanError(
                        required_type=element,
                        message=f"No qualifying bean of type '{getattr(element, '__qualname__', element)}' "
                                f"available: expected at least 1 bean which qualifies as autowire candidate",
                    )
                return None
            beans = {}
            for name in names:
                bean = self.do_get_bean(name, ctx=ctx)
                if not isinstance(bean, NullBean):
                    beans[name] = bean
            autowired_names.extend(names)
            if container is dict:
                return beans
            return container(beans.values())

        if not isinstance(annotation, type) and get_origin(annotation) is None:
            if required:
                raise NoSuchBeanError(required_type=annotation)
            return None

        names = self._find_autowire_candidates(requesting_bean_name, annotation, ctx)
        if not names:
            if required:
                raise NoSuchBeanError(
                    required_type=annotation,
                    message=f"No qualifying bean of type '{getattr(annotation, '__qualname__', annotation)}' "
                            f"available: expected at least 1 bean which qualifies as autowire candidate",
                )
            return None
        if len(names) > 1:
            chosen = self._determine_autowire_candidate(names, descriptor, annotation)
            if chosen is None:
                raise NoUniqueBeanError(annotation, names)
        else:
            chosen = names[0]

        autowired_names.append(chosen)
        bean = self.do_get_bean(chosen, ctx=ctx)
        if isinstance(bean, NullBean):
            if required:
                raise NoSuchBeanError(chosen, annotation, f"Bean named '{chosen}' is a null bean")
            return None
        return bean

    def _find_autowire_candidates(self, requesting_bean_name: Optional[str], required_type: Any,
                                  ctx: CreationContext) -> List[str]:
        names = list(self._bean_names_for_type(required_type, True, True, ctx))
        if self.parent is not None:
            for name in self.parent.get_bean_names_for_type(required_type):
                if name not in names and not self.contains_local_bean(name):
                    names.append(name)
        names = [n for n in names if self._is_autowire_candidate(n)]
        self_references = [n for n in names if self.transformed_bean_name(n) == requesting_bean_name]
        others = [n for n in names if n not in self_references]
        return others or self_references

    def _determine_autowire_candidate(self, names: Sequence[str], descriptor: DependencyDescriptor,
                                      required_type: Any) -> Optional[str]:
        primary = self._determine_primary_candidate(names, required_type)
        if primary is not None:
            return primary
        if descriptor.name is not None:
            for name in names:
                if name == descriptor.name or descriptor.name in self.get_aliases(name):
                    return name
        return None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_post_processor(self, processor: Any) -> None:
        """Register a hook; registering the same object again moves it last."""
        self.post_processors.add(processor)

    def register_scope(self, name: str, scope: Scope) -> None:
        """Register a custom scope under ``name``.

        Raises:
            ValueError: When ``name`` is ``singleton`` or ``prototype``
        """
        if name in (SCOPE_SINGLETON, SCOPE_PROTOTYPE):
            raise ValueError("Cannot replace existing scopes 'singleton' and 'prototype'")
        previous = self._scopes.get(name)
        if previous is not None and previous is not scope:
            logger.debug("Replacing scope '%s' from [%r] to [%r]", name, previous, scope)
        self._scopes[name] = scope

    def get_registered_scope(self, name: str) -> Scope:
        """Return the custom scope ``name``.

        Raises:
            IllegalStateError: When no scope is registered under ``name``
        """
        scope = self._scopes.get(name)
        if scope is None:
            raise IllegalStateError(f"No Scope registered for scope name '{name}'")
        return scope

    def get_registered_scope_names(self) -> List[str]:
        return list(self._scopes)

    def register_singleton(self, name: str, instance: Any) -> None:
        """Register an existing object as a singleton bean.

        Raises:
            IllegalStateError: When a singleton is already registered
        """
        self.registry.register_singleton(name, instance)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def pre_instantiate_singletons(self) -> None:
        """Create every non-abstract, non-lazy singleton, in registration order.

        Factory beans are created as factories; their products stay lazy.
        """
        logger.debug("Pre-instantiating singletons in %r", self)
        for name in self.source.definition_names():
            mbd = self.get_merged_definition(name)
            if mbd.abstract or not mbd.is_singleton() or mbd.lazy_init:
                continue
            if self._is_factory_bean_definition(name, mbd):
                self.get_bean("&" + name)
            else:
                self.get_bean(name)

    def destroy_singletons(self) -> None:
        """Destroy all singletons, newest first, dependents before their dependencies."""
        self.registry.destroy_singletons()
        with self._lock:
            self._factory_bean_objects.clear()
            self._already_created.clear()

    def destroy_singleton(self, name: str) -> None:
        bean_name = self.canonical_name(name)
        self.registry.destroy_singleton(bean_name)
        with self._lock:
            self._factory_bean_objects.pop(bean_name, None)

    def destroy_bean(self, name: str, instance: Any) -> None:
        """Destroy ``instance`` of the (typically prototype) bean ``name``."""
        mbd = self.get_merged_definition(name)
        DisposableBeanAdapter(instance, name, mbd, self.post_processors.destruction_hooks).destroy()

    def destroy_scoped_bean(self, name: str) -> None:
        """Remove the bean ``name`` from its custom scope and destroy it.

        Raises:
            IllegalStateError: When the bean is a singleton or prototype
        """
        mbd = self.get_merged_definition(name)
        if mbd.is_singleton() or mbd.is_prototype():
            raise IllegalStateError(
                f"Bean name '{name}' does not correspond to an object in a mutable scope"
            )
        instance = self.get_registered_scope(mbd.scope).remove(self.canonical_name(name))
        if instance is not None:
            self.destroy_bean(name, instance)

    def __repr__(self):
        return f"KotBeansFactory(definitions={self.source.definition_names()!r})"


def _caused_by(error: BaseException, kind: type) -> bool:
    current: Optional[BaseException] = error
    seen = set()
    while current is not None and id(current) not in seen:
        if isinstance(current, kind):
            return True
        seen.add(id(current))
        current = current.__cause__
    return False
