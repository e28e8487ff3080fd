"""
ConstructorResolver

Creates the raw instance of a bean, before any property is set. The
instance comes from, in order of precedence:

1. the instance supplier of the definition
2. a factory method, either on another bean (``factory_bean_name``) or a
   static/class method of the bean class
3. a constructor of the bean class

Constructors and factory-method overloads are chosen greedily: candidates
are tried with the most parameters first, and the first candidate whose
arguments can all be satisfied wins over every candidate with fewer
parameters. Candidates with the same number of parameters are ranked by
how closely the argument types match the declared parameter types.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from .conversion import TypeConverter
from .definition import AutowireMode, RootBeanDefinition, ValueHolder
from .exceptions import (
    AmbiguousFactoryMethodError,
    BeanCreationError,
    BeanDefinitionValidationError,
    BeanInstantiationError,
    ConversionError,
    DefinitionStoreError,
    NoSuchBeanError,
    UnsatisfiedDependencyError,
)
from .introspection import (
    DependencyDescriptor,
    Executable,
    ParameterInfo,
    is_assignable,
    is_instance,
    is_simple_type,
    primitive_default,
    type_distance,
    type_name,
    _resolve_type_hints,
    unwrap_optional,
)
from .values import NULL_BEAN
from .value_resolver import ValueResolver

if TYPE_CHECKING:
    from .creation_context import CreationContext
    from .factory import KotBeansFactory

logger = logging.getLogger(__name__)


@dataclass
class _ResolvedArguments:
    """Constructor argument values after resolution of references"""
    indexed: Dict[int, ValueHolder] = field(default_factory=dict)
    generic: List[ValueHolder] = field(default_factory=list)

    def count(self) -> int:
        return len(self.indexed) + len(self.generic)

    def min_parameter_count(self) -> int:
        highest = max(self.indexed) + 1 if self.indexed else 0
        return max(highest, self.count())


@dataclass
class _ArgumentsHolder:
    """Argument values chosen for one candidate"""
    values: List[Any]
    autowired_names: List[str]


class ConstructorResolver:
    """Chooses and invokes the constructor or factory method of a bean.

    Attributes:
        factory: The owning factory, used for dependency resolution

    Example (internal usage)::

        resolver = ConstructorResolver(factory)
        raw = resolver.instantiate("widget", mbd, None, ctx)
    """

    def __init__(self, factory: 'KotBeansFactory'):
        self.factory = factory

    @property
    def _converter(self) -> TypeConverter:
        return self.factory.type_converter

    def instantiate(self, bean_name: str, mbd: RootBeanDefinition,
                    explicit_args: Optional[Sequence[Any]], ctx: 'CreationContext') -> Any:
        """Create the raw instance of ``bean_name``.

        Args:
            bean_name: Name of the bean
            mbd: Merged definition of the bean
            explicit_args: Arguments passed to ``get_bean``, used instead of
                the declared constructor arguments
            ctx: Creation context of the calling chain

        Returns:
            The raw instance, or ``NULL_BEAN`` for a factory method or
            supplier that returned None

        Raises:
            BeanInstantiationError: When the chosen constructor, factory
                method or supplier raises
            UnsatisfiedDependencyError: When no candidate can be satisfied
            AmbiguousFactoryMethodError: When candidates tie
        """
        if mbd.instance_supplier is not None and explicit_args is None:
            return self._obtain_from_supplier(bean_name, mbd)
        if mbd.factory_method_name:
            return self.instantiate_using_factory_method(bean_name, mbd, explicit_args, ctx)
        return self.autowire_constructor(bean_name, mbd, explicit_args, ctx)

    def _obtain_from_supplier(self, bean_name: str, mbd: RootBeanDefinition) -> Any:
        try:
            instance = mbd.instance_supplier()
        except BeanCreationError:
            raise
        except Exception as ex:
            raise BeanInstantiationError(bean_name, "Instance supplier threw exception", ex) from ex
        return NULL_BEAN if instance is None else instance

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    def autowire_constructor(self, bean_name: str, mbd: RootBeanDefinition,
                             explicit_args: Optional[Sequence[Any]], ctx: 'CreationContext') -> Any:
        bean_class = self.factory.resolve_bean_class(mbd, bean_name)
        if bean_class is None:
            raise BeanCreationError(bean_name, "No bean class specified on bean definition")
        if mbd.lookup_overrides:
            bean_class = self.lookup_subclass(bean_name, mbd, bean_class)

        with mbd.constructor_lock:
            cached = mbd.resolved_executable
        if cached is not None and explicit_args is None:
            candidates: Sequence[Executable] = [cached]
            autowiring = mbd.resolved_autowire_mode == AutowireMode.CONSTRUCTOR
        else:
            determined = None
            for hook in self.factory.post_processors.instantiation_hooks:
                determined = hook.determine_candidate_constructors(bean_class, bean_name)
                if determined:
                    break
            candidates = list(determined) if determined else self.factory.type_resolver.constructors(bean_class)
            autowiring = bool(determined) or mbd.resolved_autowire_mode == AutowireMode.CONSTRUCTOR

        chosen, args = self._choose(bean_name, mbd, candidates, explicit_args, autowiring,
                                    factory_method=False, ctx=ctx)
        logger.debug("Instantiating bean '%s' with %s", bean_name, chosen.describe())
        try:
            return chosen.invoke(args)
        except BeanCreationError:
            raise
        except Exception as ex:
            raise BeanInstantiationError(
                bean_name, "Constructor threw exception", ex, executable=chosen.describe()
            ) from ex

    def lookup_subclass(self, bean_name: str, mbd: RootBeanDefinition, bean_class: type) -> type:
        """Return a subclass of ``bean_class`` with the lookup overrides of ``mbd``.

        Each overridden method returns the bean it names, or the bean of its
        return annotation when no name is given.

        Raises:
            BeanDefinitionValidationError: When the class lacks an overridden method
        """
        if mbd.lookup_subclass is not None and mbd.lookup_subclass.__bases__ == (bean_class,):
            return mbd.lookup_subclass

        factory = self.factory
        namespace: Dict[str, Any] = {"__module__": bean_class.__module__,
                                     "__qualname__": bean_class.__qualname__}
        for override in mbd.lookup_overrides:
            original = getattr(bean_class, override.method_name, None)
            if not callable(original):
                raise BeanDefinitionValidationError(
                    f"Invalid method override: no method with name '{override.method_name}' "
                    f"on class [{type_name(bean_class)}]",
                    bean_name,
                )
            namespace[override.method_name] = _lookup_method(
                factory, override.bean_name, _resolve_type_hints(original).get("return"),
                override.method_name,
            )
        subclass = type(bean_class.__name__, (bean_class,), namespace)
        mbd.lookup_subclass = subclass
        return subclass

    # ------------------------------------------------------------------
    # Factory methods
    # ------------------------------------------------------------------

    def instantiate_using_factory_method(self, bean_name: str, mbd: RootBeanDefinition,
                                         explicit_args: Optional[Sequence[Any]],
                                         ctx: 'CreationContext') -> Any:
        if mbd.factory_bean_name:
            if mbd.factory_bean_name == bean_name:
                raise DefinitionStoreError(
                    "factory-bean reference points back to the same bean definition", bean_name
                )
            owner = self.factory.do_get_bean(mbd.factory_bean_name, ctx=ctx)
            self.factory.registry.register_dependent_bean(
                self.factory.transformed_bean_name(mbd.factory_bean_name), bean_name
            )
            static = False
            owner_class = type(owner)
        else:
            owner = self.factory.resolve_bean_class(mbd, bean_name)
            if owner is None:
                raise DefinitionStoreError(
                    "bean definition declares neither a bean class nor a factory-bean reference",
                    bean_name,
                )
            static = True
            owner_class = owner

        candidates = self.factory.type_resolver.factory_methods(owner, mbd.factory_method_name, static)
        if not candidates:
            raise BeanCreationError(
                bean_name,
                f"No matching factory method found on class [{type_name(owner_class)}]: "
                f"factory method '{mbd.factory_method_name}()'. Check that a method with the "
                f"specified name exists and that it is {'static' if static else 'non-static'}.",
            )

        autowiring = mbd.resolved_autowire_mode == AutowireMode.CONSTRUCTOR
        chosen, args = self._choose(bean_name, mbd, candidates, explicit_args, autowiring,
                                    factory_method=True, ctx=ctx)
        logger.debug("Instantiating bean '%s' with factory method %s", bean_name, chosen.describe())
        if chosen.return_type is not None and isinstance(chosen.return_type, type):
            mbd.resolved_factory_return_type = chosen.return_type
        try:
            instance = chosen.invoke(args)
        except BeanCreationError:
            raise
        except Exception as ex:
            raise BeanInstantiationError(
                bean_name,
                f"Factory method '{mbd.factory_method_name}' threw exception with message: {ex}",
                ex,
                executable=chosen.describe(),
            ) from ex
        return NULL_BEAN if instance is None else instance

    # ------------------------------------------------------------------
    # Candidate selection
    # ------------------------------------------------------------------

    def _choose(self, bean_name: str, mbd: RootBeanDefinition, candidates: Sequence[Executable],
                explicit_args: Optional[Sequence[Any]], autowiring: bool,
                factory_method: bool, ctx: 'CreationContext') -> Tuple[Executable, List[Any]]:
        resolved: Optional[_ResolvedArguments] = None
        if explicit_args is not None:
            min_count = len(explicit_args)
        else:
            resolved = self._resolve_constructor_arguments(bean_name, mbd, ctx)
            min_count = resolved.min_parameter_count()

        ordered = sorted(candidates, key=lambda c: -len(c.parameters))
        best: Optional[Executable] = None
        best_args: Optional[_ArgumentsHolder] = None
        best_weight = math.inf
        ties: List[Executable] = []
        causes: List[UnsatisfiedDependencyError] = []

        for candidate in ordered:
            count = len(candidate.parameters)
            if best_args is not None and len(best_args.values) > count:
                break
            if count < min_count:
                continue
            try:
                if explicit_args is not None:
                    holder = self._explicit_argument_array(bean_name, candidate, explicit_args)
                else:
                    holder = self._create_argument_array(bean_name, candidate, resolved, autowiring, ctx)
            except UnsatisfiedDependencyError as ex:
                logger.debug("Ignoring %s for bean '%s': %s", candidate.describe(), bean_name, ex)
                causes.append(ex)
                continue

            weight = _type_difference_weight(candidate, holder.values)
            if weight < best_weight:
                best, best_args, best_weight = candidate, holder, weight
                ties = []
            elif (weight == best_weight and best is not None
                  and count == len(best.parameters)
                  and _signature(candidate) != _signature(best)):
                ties.append(candidate)

        if best is None or best_args is None:
            if causes:
                for cause in causes[:-1]:
                    ctx.on_suppressed_error(cause)
                raise causes[-1]
            kind = "factory method" if factory_method else "constructor"
            raise BeanCreationError(
                bean_name,
                f"Could not resolve matching {kind} on bean class "
                f"(hint: specify index/type/name arguments for simple parameters to avoid "
                f"type ambiguities). Candidates: {', '.join(c.describe() for c in ordered)}",
            )

        if ties and (factory_method or not self.factory.config.lenient_constructor_resolution):
            raise AmbiguousFactoryMethodError(bean_name, [best.describe()] + [t.describe() for t in ties])

        if explicit_args is None:
            with mbd.constructor_lock:
                mbd.resolved_executable = best
        for autowired in best_args.autowired_names:
            self.factory.registry.register_dependent_bean(autowired, bean_name)
            logger.debug("Autowiring by type from bean name '%s' via %s to bean named '%s'",
                         bean_name, best.describe(), autowired)
        return best, best_args.values

    def _resolve_constructor_arguments(self, bean_name: str, mbd: RootBeanDefinition,
                                       ctx: 'CreationContext') -> _ResolvedArguments:
        resolver = ValueResolver(self.factory, bean_name, mbd, ctx)
        result = _ResolvedArguments()
        for index, holder in mbd.constructor_args.indexed.items():
            value = resolver.resolve(f"constructor argument with index {index}", holder.value)
            result.indexed[index] = ValueHolder(value, holder.type, holder.name)
        for holder in mbd.constructor_args.generic:
            value = resolver.resolve("constructor argument", holder.value)
            result.generic.append(ValueHolder(value, holder.type, holder.name))
        return result

    def _explicit_argument_array(self, bean_name: str, candidate: Executable,
                                 explicit_args: Sequence[Any]) -> _ArgumentsHolder:
        values = list(explicit_args)
        for param in candidate.parameters[len(values):]:
            if not param.has_default:
                raise UnsatisfiedDependencyError(
                    bean_name, f"parameter '{param.name}' of {candidate.describe()}",
                    "No explicit argument given",
                )
            values.append(param.default)
        for index, (param, value) in enumerate(zip(candidate.parameters, values)):
            values[index] = self._convert(bean_name, candidate, index, param, value)
        return _ArgumentsHolder(values, [])

    def _create_argument_array(self, bean_name: str, candidate: Executable,
                               resolved: _ResolvedArguments, autowiring: bool,
                               ctx: 'CreationContext') -> _ArgumentsHolder:
        values: List[Any] = []
        autowired_names: List[str] = []
        used: set = set()

        for index, param in enumerate(candidate.parameters):
            holder = resolved.indexed.get(index)
            if holder is not None and not _holder_matches(holder, param):
                holder = None
            if holder is None:
                holder = _generic_match(resolved.generic, param, used)
            if holder is not None:
                used.add(id(holder))
                values.append(self._convert(bean_name, candidate, index, param, holder.value))
                continue

            annotation, optional = unwrap_optional(param.annotation)
            if autowiring and annotation is not None and not is_simple_type(annotation):
                descriptor = DependencyDescriptor(param.name, param.annotation,
                                                  required=not param.has_default)
                try:
                    value = self.factory.resolve_dependency(descriptor, bean_name, autowired_names, ctx)
                except NoSuchBeanError as ex:
                    raise UnsatisfiedDependencyError(
                        bean_name, f"parameter {index} of {candidate.describe()}", str(ex), ex
                    ) from ex
                if value is not None or (optional and not param.has_default):
                    values.append(value)
                    continue

            if param.has_default:
                values.append(param.default)
                continue
            is_primitive, zero = primitive_default(annotation)
            if is_primitive:
                values.append(zero)
                continue
            raise UnsatisfiedDependencyError(
                bean_name,
                f"parameter {index} of {candidate.describe()}",
                f"No argument value available for parameter '{param.name}'"
                + ("" if autowiring else "; declare a constructor argument or enable constructor autowiring"),
            )

        unused = resolved.count() - len(used)
        if unused > 0:
            raise UnsatisfiedDependencyError(
                bean_name, candidate.describe(),
                f"{unused} declared constructor argument(s) could not be matched to a parameter",
            )
        return _ArgumentsHolder(values, autowired_names)

    def _convert(self, bean_name: str, candidate: Executable, index: int,
                 param: ParameterInfo, value: Any) -> Any:
        if param.annotation is None:
            return value
        try:
            return self._converter.convert(value, param.annotation)
        except ConversionError as ex:
            raise UnsatisfiedDependencyError(
                bean_name,
                f"parameter {index} of {candidate.describe()}",
                f"Could not convert argument value of type [{type(value).__name__}] "
                f"to required type [{type_name(param.annotation)}]: {ex}",
                ex,
            ) from ex


def _lookup_method(factory: 'KotBeansFactory', bean_name: Optional[str],
                   return_type: Any, method_name: str):
    def lookup(self, *args):
        if bean_name is not None:
            return factory.get_bean(bean_name, args=list(args) if args else None)
        return factory.get_bean_by_type(return_type)

    lookup.__name__ = method_name
    return lookup


def _holder_matches(holder: ValueHolder, param: ParameterInfo) -> bool:
    if holder.name is not None and holder.name != param.name:
        return False
    if holder.type is not None and param.annotation is not None:
        return is_assignable(param.annotation, holder.type)
    return True


def _generic_match(generic: List[ValueHolder], param: ParameterInfo, used: set) -> Optional[ValueHolder]:
    for holder in generic:
        if id(holder) not in used and holder.name == param.name:
            return holder
    for holder in generic:
        if id(holder) in used or holder.name is not None:
            continue
        if holder.type is not None:
            if param.annotation is None or is_assignable(param.annotation, holder.type):
                return holder
            continue
        value = holder.value
        if (param.annotation is None or value is None or isinstance(value, str)
                or is_instance(value, param.annotation)):
            return holder
    return None


def _type_difference_weight(candidate: Executable, values: Sequence[Any]) -> float:
    return sum(type_distance(value, param.annotation)
               for param, value in zip(candidate.parameters, values)
               if value is not None)


def _signature(candidate: Executable) -> Tuple[Any, ...]:
    return tuple(p.annotation for p in candidate.parameters)
