"""
BeanCreator

Runs the creation pipeline of a single bean:

    instantiate -> merged-definition hooks -> early exposure
    -> populate (after-instantiation hooks, autowiring, property hooks,
       dependency check, apply properties)
    -> initialize (aware callbacks, before-init hooks, init methods,
       after-init hooks)
    -> reconcile early reference -> register for destruction

Every step moves forward only. A hook returning the documented "stop"
value ends population or initialization early and the bean is used as-is.
"""

import difflib
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from .definition import AutowireMode, DependencyCheck, RootBeanDefinition
from .destruction import DisposableBeanAdapter
from .exceptions import (
    BeanCreationError,
    BeanDefinitionValidationError,
    ConversionError,
    CurrentlyInCreationError,
    NoSuchBeanError,
    NotWritablePropertyError,
    UnsatisfiedDependencyError,
)
from .introspection import DependencyDescriptor, is_simple_type, type_name
from .lifecycle import BeanFactoryAware, BeanNameAware, InitializingBean
from .values import NullBean
from .value_resolver import ValueResolver

if TYPE_CHECKING:
    from .creation_context import CreationContext
    from .factory import KotBeansFactory

logger = logging.getLogger(__name__)


class BeanCreator:
    """Creates, populates and initializes bean instances for a factory.

    Example (internal usage)::

        creator = BeanCreator(factory)
        bean = creator.create_bean("widget", mbd, None, ctx)
    """

    def __init__(self, factory: 'KotBeansFactory'):
        self.factory = factory

    @property
    def _hooks(self):
        return self.factory.post_processors

    def create_bean(self, bean_name: str, mbd: RootBeanDefinition,
                    args: Optional[Sequence[Any]], ctx: 'CreationContext') -> Any:
        """Create a fully initialized bean, or return a hook's replacement.

        Args:
            bean_name: Name of the bean
            mbd: Merged definition of the bean
            args: Explicit constructor or factory-method arguments
            ctx: Creation context of the calling chain

        Returns:
            The bean (possibly ``NULL_BEAN``)

        Raises:
            BeanCreationError: When any step of the pipeline fails
            BeanDefinitionValidationError: When lookup overrides name
                methods the bean class lacks
        """
        logger.debug("Creating instance of bean '%s'", bean_name)
        self._validate_lookup_overrides(bean_name, mbd)

        try:
            bean = self._resolve_before_instantiation(bean_name, mbd)
        except BeanCreationError:
            raise
        except Exception as ex:
            raise BeanCreationError(
                bean_name, "Post-processing before instantiation of bean failed", ex,
                description=mbd.description,
            ) from ex
        if bean is not None:
            return bean

        bean = self.do_create_bean(bean_name, mbd, args, ctx)
        logger.debug("Finished creating instance of bean '%s'", bean_name)
        return bean

    def _validate_lookup_overrides(self, bean_name: str, mbd: RootBeanDefinition) -> None:
        if not mbd.lookup_overrides:
            return
        bean_class = self.factory.resolve_bean_class(mbd, bean_name)
        if bean_class is None:
            return
        for override in mbd.lookup_overrides:
            if not callable(getattr(bean_class, override.method_name, None)):
                raise BeanDefinitionValidationError(
                    f"Invalid method override: no method with name '{override.method_name}' "
                    f"on class [{type_name(bean_class)}]",
                    bean_name,
                )

    def _resolve_before_instantiation(self, bean_name: str, mbd: RootBeanDefinition) -> Any:
        if mbd.before_instantiation_resolved is False:
            return None
        bean = None
        hooks = self._hooks.instantiation_hooks
        if not mbd.synthetic and hooks:
            target_type = self.factory.predict_bean_type(bean_name, mbd)
            if target_type is not None:
                for hook in hooks:
                    bean = hook.post_process_before_instantiation(target_type, bean_name)
                    if bean is not None:
                        break
                if bean is not None:
                    bean = self.apply_after_initialization(bean, bean_name)
        mbd.before_instantiation_resolved = bean is not None
        return bean

    def do_create_bean(self, bean_name: str, mbd: RootBeanDefinition,
                       args: Optional[Sequence[Any]], ctx: 'CreationContext') -> Any:
        instance = self.factory.constructor_resolver.instantiate(bean_name, mbd, args, ctx)
        if not isinstance(instance, NullBean):
            mbd.resolved_target_type = type(instance)
            self._apply_merged_definition_hooks(bean_name, mbd, type(instance))

        early_exposure = (mbd.is_singleton()
                          and self.factory.config.allow_circular_references
                          and ctx.is_singleton_in_creation(bean_name))
        if early_exposure:
            logger.debug("Eagerly caching bean '%s' to allow for resolving potential "
                         "circular references", bean_name)
            self.factory.registry.add_singleton_factory(
                bean_name, lambda: self.get_early_bean_reference(bean_name, mbd, instance)
            )

        try:
            self.populate_bean(bean_name, mbd, instance, ctx)
            exposed = self.initialize_bean(bean_name, instance, mbd)
        except BeanCreationError as ex:
            if ex.bean_name == bean_name:
                raise
            raise BeanCreationError(
                bean_name, "Initialization of bean failed", ex, description=mbd.description
            ) from ex
        except Exception as ex:
            raise BeanCreationError(
                bean_name, "Initialization of bean failed", ex, description=mbd.description
            ) from ex

        if early_exposure:
            exposed = self._reconcile_early_reference(bean_name, instance, exposed)

        try:
            self.register_disposable_bean_if_necessary(bean_name, exposed, mbd)
        except BeanDefinitionValidationError as ex:
            raise BeanCreationError(
                bean_name, "Invalid destruction signature", ex, description=mbd.description
            ) from ex
        return exposed

    def _apply_merged_definition_hooks(self, bean_name: str, mbd: RootBeanDefinition,
                                       bean_type: type) -> None:
        with mbd.post_processing_lock:
            if mbd.post_processed:
                return
            try:
                for hook in self._hooks.instantiation_hooks:
                    hook.post_process_merged_definition(mbd, bean_type, bean_name)
            except Exception as ex:
                raise BeanCreationError(
                    bean_name, "Post-processing of merged bean definition failed", ex,
                    description=mbd.description,
                ) from ex
            mbd.post_processed = True

    def get_early_bean_reference(self, bean_name: str, mbd: RootBeanDefinition, bean: Any) -> Any:
        """Return the reference handed out while ``bean`` is still in creation."""
        exposed = bean
        if not mbd.synthetic:
            for hook in self._hooks.instantiation_hooks:
                exposed = hook.get_early_bean_reference(exposed, bean_name)
        return exposed

    def _reconcile_early_reference(self, bean_name: str, instance: Any, exposed: Any) -> Any:
        registry = self.factory.registry
        early = registry.get_exposed_early_reference(bean_name)
        if early is None:
            return exposed
        if exposed is instance:
            return early
        if self.factory.config.allow_raw_injection_despite_wrapping:
            return exposed
        if registry.has_dependent_bean(bean_name):
            actual = [d for d in registry.get_dependent_beans(bean_name)
                      if not self.factory.remove_singleton_if_created_for_type_check_only(d)]
            if actual:
                raise CurrentlyInCreationError(
                    bean_name,
                    f"Bean with name '{bean_name}' has been injected into other beans "
                    f"[{', '.join(actual)}] in its raw version as part of a circular reference, "
                    "but has eventually been wrapped. This means that said other beans do not "
                    "use the final version of the bean.",
                )
        return exposed

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def populate_bean(self, bean_name: str, mbd: RootBeanDefinition, bean: Any,
                      ctx: 'CreationContext') -> None:
        """Apply property values, autowired members and property hooks to ``bean``.

        Raises:
            BeanCreationError: When a value cannot be resolved or set
            UnsatisfiedDependencyError: When autowiring or the dependency
                check fails
        """
        if isinstance(bean, NullBean):
            if mbd.property_values:
                raise BeanCreationError(bean_name, "Cannot apply property values to null instance")
            return

        if not mbd.synthetic:
            for hook in self._hooks.instantiation_hooks:
                if not hook.post_process_after_instantiation(bean, bean_name):
                    return

        property_values: Dict[str, Any] = dict(mbd.property_values)
        mode = mbd.resolved_autowire_mode
        if mode == AutowireMode.BY_NAME:
            self._autowire_by_name(bean_name, bean, property_values, ctx)
        elif mode == AutowireMode.BY_TYPE:
            self._autowire_by_type(bean_name, bean, property_values, ctx)

        if not mbd.synthetic:
            for hook in self._hooks.property_hooks:
                result = hook.post_process_properties(property_values, bean, bean_name)
                if result is None:
                    return
                property_values = result

        if mbd.resolved_dependency_check != DependencyCheck.NONE:
            self._check_dependencies(bean_name, mbd, bean, property_values)

        if property_values:
            self.apply_property_values(bean_name, mbd, bean, property_values, ctx)

    def _unsatisfied_members(self, bean: Any, property_values: Dict[str, Any]) -> Dict[str, Any]:
        members = self.factory.type_resolver.writable_members(type(bean))
        return {
            name: hint for name, hint in members.items()
            if name not in property_values
            and getattr(bean, name, None) is None
            and not is_simple_type(hint)
        }

    def _autowire_by_name(self, bean_name: str, bean: Any, property_values: Dict[str, Any],
                          ctx: 'CreationContext') -> None:
        for name in self._unsatisfied_members(bean, property_values):
            if not self.factory.contains_bean(name):
                logger.debug("Not autowiring property '%s' of bean '%s' by name: "
                             "no matching bean found", name, bean_name)
                continue
            property_values[name] = self.factory.do_get_bean(name, ctx=ctx)
            self.factory.registry.register_dependent_bean(
                self.factory.transformed_bean_name(name), bean_name
            )
            logger.debug("Added autowiring by name from bean name '%s' via property '%s' "
                         "to bean named '%s'", bean_name, name, name)

    def _autowire_by_type(self, bean_name: str, bean: Any, property_values: Dict[str, Any],
                          ctx: 'CreationContext') -> None:
        for name, hint in self._unsatisfied_members(bean, property_values).items():
            if hint is None or hint is object:
                continue
            autowired_names: List[str] = []
            try:
                value = self.factory.resolve_dependency(
                    DependencyDescriptor(None, hint, required=False), bean_name, autowired_names, ctx
                )
            except NoSuchBeanError as ex:
                raise UnsatisfiedDependencyError(bean_name, f"property '{name}'", str(ex), ex) from ex
            if value is None:
                continue
            property_values[name] = value
            for autowired in autowired_names:
                self.factory.registry.register_dependent_bean(autowired, bean_name)
                logger.debug("Autowiring by type from bean name '%s' via property '%s' "
                             "to bean named '%s'", bean_name, name, autowired)

    def _check_dependencies(self, bean_name: str, mbd: RootBeanDefinition, bean: Any,
                            property_values: Dict[str, Any]) -> None:
        check = mbd.resolved_dependency_check
        members = self.factory.type_resolver.writable_members(type(bean))
        for name, hint in members.items():
            if name in property_values or getattr(bean, name, None) is not None:
                continue
            simple = is_simple_type(hint)
            if (check == DependencyCheck.ALL
                    or (check == DependencyCheck.SIMPLE and simple)
                    or (check == DependencyCheck.OBJECTS and not simple)):
                raise UnsatisfiedDependencyError(
                    bean_name, f"property '{name}'",
                    "Set this property value or disable dependency checking for this bean.",
                )

    def apply_property_values(self, bean_name: str, mbd: RootBeanDefinition, bean: Any,
                              property_values: Dict[str, Any], ctx: 'CreationContext') -> None:
        """Resolve every property value, then set them on ``bean``.

        Property names may be nested paths such as ``"pool.size"``.
        """
        resolver = ValueResolver(self.factory, bean_name, mbd, ctx)
        resolved = {
            path: resolver.resolve(f"property '{path}'", value)
            for path, value in property_values.items()
        }
        for path, value in resolved.items():
            try:
                self._set_property(bean, path, value)
            except (NotWritablePropertyError, ConversionError, AttributeError, TypeError, ValueError) as ex:
                raise BeanCreationError(
                    bean_name, "Error setting property values", ex,
                    property_path=path, description=mbd.description,
                ) from ex

    def _set_property(self, bean: Any, path: str, value: Any) -> None:
        target = bean
        parts = path.split(".")
        for index, part in enumerate(parts[:-1]):
            nested = getattr(target, part, None)
            if nested is None:
                raise ValueError(
                    f"Value of nested property '{'.'.join(parts[:index + 1])}' is None"
                )
            target = nested

        member = parts[-1]
        members = self.factory.type_resolver.writable_members(type(target))
        if member not in members and not _has_plain_attribute(target, member):
            raise NotWritablePropertyError(
                type(target), member, difflib.get_close_matches(member, list(members))
            )
        declared = members.get(member)
        if declared is not None:
            value = self.factory.type_converter.convert(value, declared)
        setattr(target, member, value)

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize_bean(self, bean_name: str, bean: Any, mbd: Optional[RootBeanDefinition]) -> Any:
        """Run aware callbacks, init hooks and init methods on ``bean``.

        Returns:
            The bean to expose, possibly a wrapper returned by a hook
        """
        self._invoke_aware_methods(bean_name, bean)
        synthetic = mbd is not None and mbd.synthetic

        wrapped = bean
        if not synthetic:
            for hook in self._hooks.init_hooks:
                current = hook.post_process_before_initialization(wrapped, bean_name)
                if current is None:
                    return wrapped
                wrapped = current

        try:
            self._invoke_init_methods(bean_name, wrapped, mbd)
        except BeanCreationError:
            raise
        except Exception as ex:
            raise BeanCreationError(
                bean_name, "Invocation of init method failed", ex,
                description=mbd.description if mbd is not None else None,
            ) from ex

        if not synthetic:
            wrapped = self.apply_after_initialization(wrapped, bean_name)
        return wrapped

    def _invoke_aware_methods(self, bean_name: str, bean: Any) -> None:
        if isinstance(bean, BeanNameAware):
            bean.set_bean_name(bean_name)
        if isinstance(bean, BeanFactoryAware):
            bean.set_bean_factory(self.factory)

    def _invoke_init_methods(self, bean_name: str, bean: Any, mbd: Optional[RootBeanDefinition]) -> None:
        init_name = mbd.init_method_name if mbd is not None else None
        is_initializing = isinstance(bean, InitializingBean)
        if is_initializing and init_name != "after_properties_set":
            logger.debug("Invoking after_properties_set() on bean with name '%s'", bean_name)
            bean.after_properties_set()

        if not init_name or isinstance(bean, NullBean):
            return
        if is_initializing and init_name == "after_properties_set":
            return
        method = getattr(bean, init_name, None)
        if not callable(method):
            if mbd.enforce_init_method:
                raise BeanDefinitionValidationError(
                    f"Could not find an init method named '{init_name}' on bean with name '{bean_name}'",
                    bean_name,
                )
            logger.debug("No default init method named '%s' found on bean with name '%s'",
                         init_name, bean_name)
            return
        logger.debug("Invoking init method '%s' on bean with name '%s'", init_name, bean_name)
        method()

    def apply_after_initialization(self, bean: Any, bean_name: str) -> Any:
        result = bean
        for hook in self._hooks.init_hooks:
            current = hook.post_process_after_initialization(result, bean_name)
            if current is None:
                return result
            result = current
        return result

    # ------------------------------------------------------------------
    # Destruction registration
    # ------------------------------------------------------------------

    def register_disposable_bean_if_necessary(self, bean_name: str, bean: Any,
                                              mbd: RootBeanDefinition) -> None:
        if mbd.is_prototype() or isinstance(bean, NullBean):
            return
        hooks = self._hooks.destruction_hooks
        if not DisposableBeanAdapter.requires_destruction(bean, mbd, hooks):
            return
        adapter = DisposableBeanAdapter(bean, bean_name, mbd, hooks)
        if mbd.is_singleton():
            self.factory.registry.register_disposable_bean(bean_name, adapter)
        else:
            scope = self.factory.get_registered_scope(mbd.scope)
            scope.register_destruction_callback(bean_name, adapter.destroy)


def _has_plain_attribute(target: Any, member: str) -> bool:
    if member.startswith("_"):
        return False
    if member in getattr(target, "__dict__", {}):
        return True
    return any(member in getattr(klass, "__slots__", ()) for klass in type(target).__mro__)
