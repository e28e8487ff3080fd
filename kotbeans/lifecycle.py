"""
Lifecycle

Callback interfaces a bean may implement to take part in its own
lifecycle. The factory calls them in this order::

    set_bean_name -> set_bean_factory -> (before-init hooks)
    -> after_properties_set -> custom init method -> (after-init hooks)
    ...
    (destruction hooks) -> destroy -> custom destroy method
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .factory import KotBeansFactory


class BeanNameAware(ABC):
    """Receives the name the bean was registered under"""

    @abstractmethod
    def set_bean_name(self, name: str) -> None:
        ...


class BeanFactoryAware(ABC):
    """Receives the owning factory, for lazy lookups"""

    @abstractmethod
    def set_bean_factory(self, factory: 'KotBeansFactory') -> None:
        ...


class InitializingBean(ABC):
    """Called once all properties have been applied"""

    @abstractmethod
    def after_properties_set(self) -> None:
        ...


class DisposableBean(ABC):
    """Called when the owning factory or scope destroys the bean"""

    @abstractmethod
    def destroy(self) -> None:
        ...
