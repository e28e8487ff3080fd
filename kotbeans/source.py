"""
DefinitionSource

The source of raw bean definitions. The factory only reads from it; where
definitions come from (code, files, annotations) is up to the source.

``DefinitionRegistry`` is the in-memory source used for programmatic
registration.

Example::

    registry = DefinitionRegistry()
    registry.register_definition("gadget", BeanDefinition(bean_class=Gadget))
    registry.register_definition("widget", BeanDefinition(
        bean_class=Widget,
        property_values={"dep": ref("gadget")},
    ))

    factory = KotBeansFactory(registry)
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from .definition import BeanDefinition
from .exceptions import BeanDefinitionOverrideError, DefinitionStoreError, NoSuchBeanError

# Called with the name of a definition that was replaced or removed
DefinitionListener = Callable[[str], None]


class DefinitionSource(ABC):
    """Read access to raw bean definitions."""

    @abstractmethod
    def get_definition(self, name: str) -> Optional[BeanDefinition]:
        """Return the raw definition for ``name``, or None."""

    @abstractmethod
    def definition_names(self) -> List[str]:
        """Names of all definitions, in registration order."""

    def contains_definition(self, name: str) -> bool:
        return self.get_definition(name) is not None

    def add_listener(self, listener: DefinitionListener) -> None:
        """Subscribe to changes of existing definitions.

        Sources that never change definitions may ignore listeners.
        """


class DefinitionRegistry(DefinitionSource):
    """In-memory, thread-safe definition source.

    Attributes:
        _definitions: Definitions by name, in registration order
        _listeners: Callbacks notified when a definition is replaced or removed
    """

    def __init__(self, allow_definition_overriding: bool = True):
        """Initialize an empty registry.

        Args:
            allow_definition_overriding: Whether a name may be registered twice
        """
        self._definitions: Dict[str, BeanDefinition] = {}
        self._listeners: List[DefinitionListener] = []
        self._lock = threading.Lock()
        self.allow_definition_overriding = allow_definition_overriding

    def register_definition(self, name: str, definition: BeanDefinition) -> None:
        """Register ``definition`` under ``name``.

        Args:
            name: Bean name
            definition: Raw definition; it is validated first

        Raises:
            DefinitionStoreError: When the name is empty or the definition
                is invalid
            BeanDefinitionOverrideError: When the name is taken and
                overriding is disabled
        """
        if not name:
            raise DefinitionStoreError("Bean name must not be empty")
        try:
            definition.validate()
        except DefinitionStoreError as ex:
            raise DefinitionStoreError("Validation of bean definition failed", name, ex) from ex

        with self._lock:
            existing = self._definitions.get(name)
            if existing is not None and not self.allow_definition_overriding:
                raise BeanDefinitionOverrideError(
                    f"Cannot register bean definition [{definition.target_description()}]: "
                    f"There is already [{existing.target_description()}] bound.",
                    name,
                )
            self._definitions[name] = definition
            listeners = list(self._listeners)
        if existing is not None:
            for listener in listeners:
                listener(name)

    def remove_definition(self, name: str) -> None:
        """Remove the definition registered under ``name``.

        Raises:
            NoSuchBeanError: When no such definition exists
        """
        with self._lock:
            if self._definitions.pop(name, None) is None:
                raise NoSuchBeanError(name)
            listeners = list(self._listeners)
        for listener in listeners:
            listener(name)

    def get_definition(self, name: str) -> Optional[BeanDefinition]:
        return self._definitions.get(name)

    def definition_names(self) -> List[str]:
        with self._lock:
            return list(self._definitions)

    def add_listener(self, listener: DefinitionListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def __len__(self) -> int:
        return len(self._definitions)
