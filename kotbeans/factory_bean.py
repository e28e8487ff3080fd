"""
FactoryBean

Beans that produce other objects. Requesting a factory bean by name
returns its product; prefixing the name with ``&`` returns the factory
itself.

Example::

    class ConnectionFactoryBean(FactoryBean):
        def get_object(self):
            return connect(self.url)

        def get_object_type(self):
            return Connection

    factory.get_bean("connection")   # a Connection
    factory.get_bean("&connection")  # the ConnectionFactoryBean
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Type

FACTORY_BEAN_PREFIX = "&"


class FactoryBean(ABC):
    """Object used as a factory for a bean rather than as the bean itself."""

    @abstractmethod
    def get_object(self) -> Any:
        """Return the product. ``None`` is stored as a null bean."""

    def get_object_type(self) -> Optional[Type]:
        """Type of the product, if known before creating it."""
        return None

    def is_singleton(self) -> bool:
        """Whether the product is cached per factory bean."""
        return True


def is_factory_dereference(name: Optional[str]) -> bool:
    """Whether ``name`` asks for the factory instead of its product."""
    return name is not None and name.startswith(FACTORY_BEAN_PREFIX)


def transformed_bean_name(name: str) -> str:
    """Strip every leading ``&`` from ``name``."""
    while name.startswith(FACTORY_BEAN_PREFIX):
        name = name[len(FACTORY_BEAN_PREFIX):]
    return name
