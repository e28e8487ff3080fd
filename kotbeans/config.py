"""
FactoryConfig

Switches that change how a ``KotBeansFactory`` resolves and creates beans.

Example::

    factory = KotBeansFactory(registry, config=FactoryConfig(
        allow_circular_references=False,
    ))

    # Or from plain data, e.g. a parsed settings file
    config = FactoryConfig.from_mapping({"cache_bean_metadata": False})
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class FactoryConfig:
    """Factory configuration.

    Attributes:
        allow_circular_references: Expose early references of singletons so
            that property cycles can be resolved
        allow_raw_injection_despite_wrapping: Accept that a bean injected in
            its raw form during a cycle is later wrapped by a post-processor
        cache_bean_metadata: Cache merged definitions per bean name
        allow_definition_overriding: Let a definition registry replace a
            definition registered under the same name
        lenient_constructor_resolution: Pick the first of several equally
            matching constructors instead of failing
        allow_eager_init_for_type_matching: Let type lookups create factory
            beans to ask them for their product type
    """
    allow_circular_references: bool = True
    allow_raw_injection_despite_wrapping: bool = False
    cache_bean_metadata: bool = True
    allow_definition_overriding: bool = True
    lenient_constructor_resolution: bool = True
    allow_eager_init_for_type_matching: bool = True

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'FactoryConfig':
        """Build a config from a mapping of field names to values.

        Args:
            mapping: Field names and values; missing fields keep defaults

        Returns:
            A new FactoryConfig

        Raises:
            ConfigurationError: When a key is unknown or a value is not a bool
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown factory configuration keys: {', '.join(unknown)}. "
                f"Valid keys: {', '.join(sorted(known))}"
            )
        for key, value in mapping.items():
            if not isinstance(value, bool):
                raise ConfigurationError(
                    f"Factory configuration '{key}' must be a bool, got {type(value).__name__}"
                )
        return cls(**dict(mapping))
