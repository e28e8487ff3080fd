"""
Post-Processors

Extension hooks invoked at fixed stages of bean creation. A processor
subclasses one or more of the capability classes below and overrides the
methods it cares about; the defaults leave the bean untouched.

- ``InstantiationHook``: before and after instantiation, constructor
  choice, early references for circular references, merged definitions
- ``PropertyHook``: edit or veto property values before they are applied
- ``InitHook``: before and after initialization callbacks (wrapping)
- ``DestructionHook``: before a disposable bean is destroyed

Example::

    class Timing(InitHook):
        def post_process_after_initialization(self, bean, bean_name):
            return TimingWrapper(bean)

    factory.add_post_processor(Timing())
"""

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from .definition import RootBeanDefinition
    from .introspection import Executable


class InstantiationHook:
    """Hooks around the instantiation of a bean."""

    def post_process_before_instantiation(self, bean_class: type, bean_name: str) -> Any:
        """Return an object to use instead of creating the bean, or None.

        A non-None result short-circuits creation: only after-initialization
        hooks are applied to it.
        """
        return None

    def post_process_after_instantiation(self, bean: Any, bean_name: str) -> bool:
        """Return False to skip property population of ``bean``."""
        return True

    def determine_candidate_constructors(self, bean_class: type,
                                         bean_name: str) -> Optional[Sequence['Executable']]:
        """Return the constructors to consider, or None for the default choice."""
        return None

    def get_early_bean_reference(self, bean: Any, bean_name: str) -> Any:
        """Return the reference handed out to beans in a circular reference.

        Processors that wrap beans after initialization must return the
        same wrapper here, otherwise the early reference and the final bean
        diverge.
        """
        return bean

    def post_process_merged_definition(self, mbd: 'RootBeanDefinition', bean_type: type,
                                       bean_name: str) -> None:
        """Inspect or adjust the merged definition before population.

        Called at most once per merged definition.
        """


class PropertyHook:
    """Hook applied to property values before they are set on a bean."""

    def post_process_properties(self, property_values: Dict[str, Any], bean: Any,
                                bean_name: str) -> Optional[Dict[str, Any]]:
        """Return the values to apply, or None to skip applying properties."""
        return property_values


class InitHook:
    """Hooks around the initialization callbacks of a bean.

    Returning None from either method keeps the current bean; before
    initialization it also skips the remaining initialization steps.
    """

    def post_process_before_initialization(self, bean: Any, bean_name: str) -> Any:
        return bean

    def post_process_after_initialization(self, bean: Any, bean_name: str) -> Any:
        return bean


class DestructionHook(ABC):
    """Hook applied to disposable beans before they are destroyed."""

    @abstractmethod
    def post_process_before_destruction(self, bean: Any, bean_name: str) -> None:
        """Release resources held for ``bean``."""

    def requires_destruction(self, bean: Any) -> bool:
        """Whether this hook wants to see ``bean`` at destruction time."""
        return True


class PostProcessorList:
    """Ordered, thread-safe list of post-processors.

    Adding a processor that is already registered moves it to the end.
    Capability views are rebuilt lazily after each change.

    Example::

        processors = PostProcessorList()
        processors.add(Timing())
        for hook in processors.init_hooks:
            ...
    """

    def __init__(self):
        self._processors: List[Any] = []
        self._lock = threading.Lock()
        self._views: Optional[Dict[type, List[Any]]] = None

    def add(self, processor: Any) -> None:
        with self._lock:
            self._processors = [p for p in self._processors if p is not processor]
            self._processors.append(processor)
            self._views = None

    def remove(self, processor: Any) -> None:
        with self._lock:
            self._processors = [p for p in self._processors if p is not processor]
            self._views = None

    def _view(self, capability: type) -> List[Any]:
        views = self._views
        if views is None:
            with self._lock:
                views = {
                    kind: [p for p in self._processors if isinstance(p, kind)]
                    for kind in (InstantiationHook, PropertyHook, InitHook, DestructionHook)
                }
                self._views = views
        return views[capability]

    @property
    def instantiation_hooks(self) -> List[InstantiationHook]:
        return self._view(InstantiationHook)

    @property
    def property_hooks(self) -> List[PropertyHook]:
        return self._view(PropertyHook)

    @property
    def init_hooks(self) -> List[InitHook]:
        return self._view(InitHook)

    @property
    def destruction_hooks(self) -> List[DestructionHook]:
        return self._view(DestructionHook)

    def __len__(self) -> int:
        return len(self._processors)

    def __iter__(self):
        return iter(list(self._processors))
