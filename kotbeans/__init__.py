# Public API
from .aliases import AliasRegistry
from .config import FactoryConfig
from .conversion import EvaluationContext, ExpressionEvaluator, SimpleTypeConverter, TypeConverter
from .core import KotBeansContext
from .definition import (
    INFER_METHOD,
    SCOPE_PROTOTYPE,
    SCOPE_SINGLETON,
    AutowireMode,
    BeanDefinition,
    ConstructorArgumentValues,
    DependencyCheck,
    LookupOverride,
    RootBeanDefinition,
    ValueHolder,
)
from .definition_builder import BeanDefinitionBuilder
from .exceptions import (
    AmbiguousFactoryMethodError,
    BeanCreationError,
    BeanCreationNotAllowedError,
    BeanDefinitionOverrideError,
    BeanDefinitionValidationError,
    BeanInstantiationError,
    BeanIsAbstractError,
    BeanIsNotAFactoryError,
    BeanNotOfRequiredTypeError,
    CannotLoadBeanClassError,
    ConfigurationError,
    ContainerClosedError,
    ConversionError,
    CurrentlyInCreationError,
    DefinitionStoreError,
    IllegalStateError,
    KotBeansError,
    NoSuchBeanError,
    NoUniqueBeanError,
    NotWritablePropertyError,
    ScopeNotActiveError,
    UnsatisfiedDependencyError,
)
from .factory import KotBeansFactory
from .factory_bean import FACTORY_BEAN_PREFIX, FactoryBean
from .introspection import (
    DependencyDescriptor,
    Executable,
    IntrospectingTypeResolver,
    ParameterInfo,
    TypeResolver,
    constructor,
    overload_of,
)
from .lifecycle import BeanFactoryAware, BeanNameAware, DisposableBean, InitializingBean
from .post_processors import DestructionHook, InitHook, InstantiationHook, PropertyHook
from .scope import Scope, SimpleScope, ThreadScope
from .source import DefinitionRegistry, DefinitionSource
from .values import (
    NULL_BEAN,
    BeanDefinitionHolder,
    ManagedArray,
    ManagedList,
    ManagedMap,
    ManagedSet,
    NullBean,
    RuntimeBeanNameReference,
    RuntimeBeanReference,
    TypedStringValue,
    ref,
)

__all__ = [
    "KotBeansFactory",
    "KotBeansContext",
    "FactoryConfig",
    "DefinitionSource",
    "DefinitionRegistry",
    "AliasRegistry",
    # Definitions
    "BeanDefinition",
    "RootBeanDefinition",
    "BeanDefinitionBuilder",
    "ConstructorArgumentValues",
    "ValueHolder",
    "LookupOverride",
    "AutowireMode",
    "DependencyCheck",
    "SCOPE_SINGLETON",
    "SCOPE_PROTOTYPE",
    "INFER_METHOD",
    # Values
    "RuntimeBeanReference",
    "RuntimeBeanNameReference",
    "TypedStringValue",
    "BeanDefinitionHolder",
    "ManagedList",
    "ManagedArray",
    "ManagedSet",
    "ManagedMap",
    "NullBean",
    "NULL_BEAN",
    "ref",
    # Extension points
    "FactoryBean",
    "FACTORY_BEAN_PREFIX",
    "InstantiationHook",
    "PropertyHook",
    "InitHook",
    "DestructionHook",
    "BeanNameAware",
    "BeanFactoryAware",
    "InitializingBean",
    "DisposableBean",
    "Scope",
    "SimpleScope",
    "ThreadScope",
    # Collaborators
    "TypeResolver",
    "IntrospectingTypeResolver",
    "Executable",
    "ParameterInfo",
    "DependencyDescriptor",
    "constructor",
    "overload_of",
    "TypeConverter",
    "SimpleTypeConverter",
    "ExpressionEvaluator",
    "EvaluationContext",
    # Exceptions
    "KotBeansError",
    "ContainerClosedError",
    "ConfigurationError",
    "IllegalStateError",
    "ConversionError",
    "NotWritablePropertyError",
    "DefinitionStoreError",
    "BeanDefinitionOverrideError",
    "CannotLoadBeanClassError",
    "BeanDefinitionValidationError",
    "NoSuchBeanError",
    "NoUniqueBeanError",
    "BeanNotOfRequiredTypeError",
    "BeanIsNotAFactoryError",
    "BeanCreationError",
    "BeanInstantiationError",
    "CurrentlyInCreationError",
    "UnsatisfiedDependencyError",
    "AmbiguousFactoryMethodError",
    "BeanIsAbstractError",
    "BeanCreationNotAllowedError",
    "ScopeNotActiveError",
]

# Version will be dynamically set at build time
try:
    from ._version import __version__
except ImportError:
    # Fallback for development
    __version__ = '0.0.0'
