"""
KotBeans Exceptions

Custom exception hierarchy for the KotBeans bean factory
"""

from typing import Iterable, List, Optional, Sequence

from .factory_bean import FactoryBean


class KotBeansError(Exception):
    """
    Base exception for all KotBeans errors.

    All KotBeans-specific exceptions inherit from this class.
    You can catch this to handle any KotBeans error generically.

    Example:
        >>> try:
        ...     service = factory.get_bean("service")
        ... except KotBeansError as e:
        ...     print(f"Bean error: {e}")
    """

    pass


class ContainerClosedError(KotBeansError):
    """
    Raised when attempting to use a closed container.

    This error occurs when calling ``get_bean()`` or ``refresh()`` on a
    ``KotBeansContext`` that has been closed.

    Common causes:
        - Using a context after calling ``context.close()``
        - Using a context after exiting a ``with`` block

    Solution:
        Create a new ``KotBeansContext`` instead of reusing a closed one::

            with KotBeansContext(registry) as context:
                service = context.get_bean("service")  # OK
            # Context is now closed

            context2 = KotBeansContext(registry)
    """

    pass


class ConfigurationError(KotBeansError):
    """
    Raised when a factory configuration is invalid.

    Common causes:
        - Unknown keys passed to ``FactoryConfig.from_mapping()``
        - Non-boolean values for boolean switches

    Solution:
        Only use the fields declared on ``FactoryConfig``::

            config = FactoryConfig.from_mapping({
                "allow_circular_references": False,
            })
    """

    pass


class IllegalStateError(KotBeansError):
    """
    Raised when the factory or one of its registries is used in a way
    that contradicts its current state.

    Common causes:
        - Registering a singleton under a name that already holds one
        - Registering an alias that would create an alias cycle
        - Requesting a bean from a scope name that was never registered
        - Moving a singleton slot backwards (e.g. from finished to early)

    Solution:
        Check the state first (``contains_singleton()``, ``is_alias()``,
        ``get_registered_scope()``) or remove the existing entry before
        registering a new one.
    """

    pass


class ConversionError(KotBeansError):
    """
    Raised when a value cannot be converted to the required type.

    Attributes:
        value: The value that could not be converted
        target_type: The type the value was converted to

    Common causes:
        - A literal such as ``"abc"`` declared for an ``int`` property
        - A bean of an unrelated type passed as ``required_type``

    Solution:
        Declare the value with the right type, or register a custom
        ``TypeConverter`` with the factory.
    """

    def __init__(self, value, target_type, message: Optional[str] = None):
        self.value = value
        self.target_type = target_type
        type_name = getattr(target_type, "__name__", str(target_type))
        super().__init__(
            message or f"Cannot convert value {value!r} of type "
                       f"{type(value).__name__} to required type {type_name}"
        )


class NotWritablePropertyError(KotBeansError):
    """
    Raised when a property value targets a member that cannot be set.

    Attributes:
        bean_type: Type of the bean the value was applied to
        property_name: The offending property path
        possible_matches: Similar writable member names

    Common causes:
        - Typo in the property name
        - A read-only ``property`` without a setter
        - A class with ``__slots__`` that does not list the member

    Solution:
        Use one of the suggested names, or add a setter to the class.
    """

    def __init__(self, bean_type: type, property_name: str,
                 possible_matches: Sequence[str] = ()):
        self.bean_type = bean_type
        self.property_name = property_name
        self.possible_matches = list(possible_matches)
        message = (
            f"Invalid property '{property_name}' of bean class "
            f"[{bean_type.__module__}.{bean_type.__qualname__}]: "
            f"Bean property '{property_name}' is not writable"
        )
        if self.possible_matches:
            quoted = " or ".join(f"'{m}'" for m in self.possible_matches)
            message += f". Did you mean {quoted}?"
        super().__init__(message)


class DefinitionStoreError(KotBeansError):
    """
    Raised when declarative bean metadata is malformed or unsatisfiable.

    Attributes:
        bean_name: Name of the definition at fault (if known)

    Common causes:
        - A ``parent_name`` that does not exist
        - A definition declared as its own parent without a parent factory
        - A factory bean reference pointing back to the same definition

    Solution:
        Fix the definition. This error is raised before any instance of the
        bean is created, so the definition source is the place to look.
    """

    def __init__(self, message: str, bean_name: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        self.bean_name = bean_name
        prefix = f"Invalid bean definition with name '{bean_name}': " if bean_name else ""
        text = prefix + message
        if cause is not None:
            text += f"; nested exception is {type(cause).__name__}: {cause}"
        super().__init__(text)


class BeanDefinitionOverrideError(DefinitionStoreError):
    """
    Raised when a definition is registered under a name that is taken and
    overriding is disabled.

    Solution:
        Enable ``allow_definition_overriding`` or remove the existing
        definition first::

            registry.remove_definition("service")
            registry.register_definition("service", new_definition)
    """

    pass


class CannotLoadBeanClassError(DefinitionStoreError):
    """
    Raised when a definition's ``bean_class_name`` cannot be imported.

    Common causes:
        - Typo in the dotted path
        - The module is not importable from the current environment

    Solution:
        Use ``"package.module.ClassName"`` or ``"package.module:ClassName"``
        and make sure the module imports cleanly.
    """

    pass


class BeanDefinitionValidationError(DefinitionStoreError):
    """
    Raised when a merged definition fails validation.

    Common causes:
        - A destroy method taking more than one parameter
        - A destroy method whose single parameter is not ``bool``
        - An enforced init or destroy method that does not exist
        - A lookup override for a method the class does not declare
        - Combining a factory method with lookup overrides
    """

    pass


class NoSuchBeanError(KotBeansError):
    """
    Raised when a requested bean is not defined.

    Attributes:
        bean_name: Requested name, if looked up by name
        required_type: Requested type, if looked up by type

    Common causes:
        - The definition was never registered
        - Typo in the bean name or alias
        - A type lookup without any matching candidate

    Solution:
        Register a definition for the name, or check
        ``factory.contains_bean(name)`` before requesting it.
    """

    def __init__(self, bean_name: Optional[str] = None,
                 required_type: Optional[type] = None,
                 message: Optional[str] = None):
        self.bean_name = bean_name
        self.required_type = required_type
        if message is None:
            if bean_name is not None:
                message = f"No bean named '{bean_name}' available"
            else:
                type_name = getattr(required_type, "__name__", str(required_type))
                message = f"No qualifying bean of type '{type_name}' available"
        super().__init__(message)


class NoUniqueBeanError(NoSuchBeanError):
    """
    Raised when a lookup by type finds more than one candidate and none of
    them is marked ``primary``.

    Attributes:
        candidates: Names of all matching beans

    Solution:
        Mark one definition as ``primary=True``, exclude the others with
        ``autowire_candidate=False``, or look the bean up by name.
    """

    def __init__(self, required_type: type, candidates: Iterable[str]):
        self.candidates = list(candidates)
        type_name = getattr(required_type, "__name__", str(required_type))
        super().__init__(
            required_type=required_type,
            message=(
                f"No qualifying bean of type '{type_name}' available: "
                f"expected single matching bean but found {len(self.candidates)}: "
                f"{', '.join(self.candidates)}"
            ),
        )


class BeanNotOfRequiredTypeError(KotBeansError):
    """
    Raised when a bean does not match the ``required_type`` of a lookup.

    Attributes:
        bean_name: Name of the bean
        required_type: Expected type
        actual_type: Type of the bean instance
    """

    def __init__(self, bean_name: str, required_type: type, actual_type: type):
        self.bean_name = bean_name
        self.required_type = required_type
        self.actual_type = actual_type
        super().__init__(
            f"Bean named '{bean_name}' is expected to be of type "
            f"'{getattr(required_type, '__name__', required_type)}' but was actually of type "
            f"'{actual_type.__name__}'"
        )


class BeanIsNotAFactoryError(BeanNotOfRequiredTypeError):
    """
    Raised when a bean is requested with the ``&`` prefix but is not a
    ``FactoryBean``.

    Solution:
        Drop the ``&`` prefix to get the bean itself.
    """

    def __init__(self, bean_name: str, actual_type: type):
        super().__init__(bean_name, FactoryBean, actual_type)


class BeanCreationError(KotBeansError):
    """
    Raised when anything fails while creating a bean.

    The message names the bean, the property path being resolved (if any)
    and the nested cause, so a failure deep inside an object graph reads as
    a chain: ``Error creating bean with name 'a': ...; nested exception is
    BeanCreationError: Error creating bean with name 'b': ...``.

    Attributes:
        bean_name: Name of the bean that failed
        property_path: Argument or property being resolved, if any
        related_causes: Suppressed errors that may explain the failure

    Common causes:
        - A constructor, factory method or init method raised
        - A referenced bean could not be created
        - A post-processor raised

    Solution:
        Read the nested exception at the end of the message; it is the
        root cause. The failing singleton is rolled back, so the request
        can be retried once the cause is fixed.
    """

    def __init__(self, bean_name: Optional[str], message: str,
                 cause: Optional[BaseException] = None,
                 property_path: Optional[str] = None,
                 description: Optional[str] = None):
        self.bean_name = bean_name
        self.property_path = property_path
        self.detail = message
        self.related_causes: List[BaseException] = []
        if bean_name is not None:
            text = f"Error creating bean with name '{bean_name}'"
            if description:
                text += f" defined by {description}"
            text += f": {message}"
        else:
            text = message
        if cause is not None:
            text += f"; nested exception is {type(cause).__name__}: {cause}"
        super().__init__(text)

    def add_related_cause(self, cause: BaseException) -> None:
        """Attach a suppressed error that happened during the same creation."""
        self.related_causes.append(cause)


class BeanInstantiationError(BeanCreationError):
    """
    Raised when the constructor, factory method or instance supplier of a
    bean fails.

    Attributes:
        executable: Description of the constructor or method attempted
    """

    def __init__(self, bean_name: Optional[str], message: str,
                 cause: Optional[BaseException] = None,
                 executable: Optional[str] = None):
        self.executable = executable
        if executable:
            message = f"{message} [{executable}]"
        super().__init__(bean_name, message, cause)


class CurrentlyInCreationError(BeanCreationError):
    """
    Raised when a bean is requested while it is being created and no early
    reference can satisfy the request.

    This error occurs for constructor-argument cycles, self-referencing
    prototypes, or when a bean was handed out in its raw form to another
    bean and later replaced by a wrapper.

    Example of an unresolvable cycle::

        class A:
            def __init__(self, b: "B"): ...

        class B:
            def __init__(self, a: A): ...  # Cycle through constructors!

    Solution:
        1. Inject one side through a property instead of the constructor
        2. Turn the prototype into a singleton
        3. Look the bean up lazily with ``BeanFactoryAware``
    """

    def __init__(self, bean_name: str, message: Optional[str] = None,
                 cycle: Optional[Sequence[str]] = None):
        self.cycle = list(cycle) if cycle else []
        if message is None:
            message = "Requested bean is currently in creation: Is there an unresolvable circular reference?"
            if self.cycle:
                message += f" ({' -> '.join(self.cycle)})"
        super().__init__(bean_name, message)


class UnsatisfiedDependencyError(BeanCreationError):
    """
    Raised when a bean depends on something that cannot be provided.

    This covers dependency-check violations, constructor parameters that
    have no value and cannot be autowired, and ambiguous autowiring by type.

    Attributes:
        dependency: Name of the property or parameter
    """

    def __init__(self, bean_name: Optional[str], dependency: str, message: str,
                 cause: Optional[BaseException] = None):
        self.dependency = dependency
        super().__init__(
            bean_name,
            f"Unsatisfied dependency expressed through {dependency}: {message}",
            cause,
        )


class AmbiguousFactoryMethodError(BeanCreationError):
    """
    Raised when two factory methods (or constructors in strict mode) match
    the available arguments equally well.

    Attributes:
        candidates: Descriptions of the tied candidates

    Solution:
        Pass constructor arguments with explicit types or names, or remove
        one of the overloads.
    """

    def __init__(self, bean_name: str, candidates: Sequence[str]):
        self.candidates = list(candidates)
        super().__init__(
            bean_name,
            "Ambiguous factory method matches found: " + ", ".join(self.candidates),
        )


class BeanIsAbstractError(BeanCreationError):
    """
    Raised when an abstract definition is requested as a bean.

    Abstract definitions exist only as parents for child definitions.
    """

    def __init__(self, bean_name: str):
        super().__init__(bean_name, "Bean definition is abstract")


class BeanCreationNotAllowedError(BeanCreationError):
    """
    Raised when a singleton is requested while the factory destroys its
    singletons.

    Solution:
        Do not request beans from destroy methods; keep references to the
        collaborators you need instead.
    """

    pass


class ScopeNotActiveError(BeanCreationError):
    """
    Raised when a custom scope cannot provide an instance right now.

    Custom ``Scope`` implementations raise this from ``get()`` when there
    is no active scope instance (for example a request scope outside a
    request).
    """

    pass
