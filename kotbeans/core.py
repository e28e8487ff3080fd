"""
KotBeansContext

This module provides the container façade over a ``KotBeansFactory``.
A context owns one factory, creates its eager singletons on ``refresh()``
and destroys them on ``close()``.

Use Cases:
    - Applications (one context per process)
    - Test isolation (fresh context per test)
    - Hierarchies (a child context per tenant or per plugin)

Example::

    registry = DefinitionRegistry()
    registry.register_definition("database", BeanDefinition(bean_class=Database))

    with KotBeansContext(registry) as app:
        database = app.get_bean("database")
    # close() destroyed the singletons
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from .config import FactoryConfig
from .exceptions import ContainerClosedError
from .factory import KotBeansFactory
from .scope import Scope
from .source import DefinitionRegistry, DefinitionSource

logger = logging.getLogger(__name__)

T = TypeVar('T')


class KotBeansContext:
    """Container instance owning a bean factory.

    Attributes:
        _registry: Definition source the factory reads from
        _factory: The bean factory
        _closed: Flag indicating if the context has been closed
        _refreshed: Flag indicating if refresh() completed

    Example::

        app = KotBeansContext(registry)
        app.refresh()
        service = app.get_bean("service")
        app.close()

        # A child context resolves missing names through its parent
        child = KotBeansContext(child_registry, parent=app)
    """

    def __init__(self, registry: Optional[DefinitionSource] = None,
                 config: Optional[FactoryConfig] = None,
                 parent: Optional['KotBeansContext'] = None):
        """Initialize a context.

        Args:
            registry: Definition source (a new, empty ``DefinitionRegistry``
                when omitted)
            config: Factory configuration (optional)
            parent: Parent context (optional)

        Example::

            registry = DefinitionRegistry()
            registry.register_definition("clock", BeanDefinition(bean_class=Clock))

            app = KotBeansContext(registry, config=FactoryConfig(allow_circular_references=False))
        """
        if registry is None:
            registry = DefinitionRegistry(
                allow_definition_overriding=(config or FactoryConfig()).allow_definition_overriding
            )
        self._registry = registry
        self._parent = parent
        self._factory = KotBeansFactory(
            registry,
            parent=parent.factory if parent is not None else None,
            config=config,
        )
        self._closed: bool = False
        self._refreshed: bool = False

    def _ensure_not_closed(self) -> None:
        """Ensure the context is not closed.

        Raises:
            ContainerClosedError: When the context has been closed
        """
        if self._closed:
            raise ContainerClosedError("This context is already closed")

    @property
    def factory(self) -> KotBeansFactory:
        """The bean factory of this context.

        Raises:
            ContainerClosedError: When the context has been closed
        """
        self._ensure_not_closed()
        return self._factory

    @property
    def registry(self) -> DefinitionSource:
        return self._registry

    @property
    def parent(self) -> Optional['KotBeansContext']:
        return self._parent

    def refresh(self) -> None:
        """Create all non-lazy singletons.

        If any of them fails, the singletons created so far are destroyed
        before the error propagates, leaving the context unrefreshed.

        Raises:
            ContainerClosedError: When the context has been closed
            BeanCreationError: When an eager singleton cannot be created

        Example::

            app = KotBeansContext(registry)
            app.refresh()  # database, cache, ... are created now
        """
        self._ensure_not_closed()
        try:
            self._factory.pre_instantiate_singletons()
        except Exception:
            logger.warning("Exception encountered during context initialization - "
                           "cancelling refresh attempt", exc_info=True)
            self._factory.destroy_singletons()
            raise
        self._refreshed = True

    @property
    def is_refreshed(self) -> bool:
        return self._refreshed

    def get_bean(self, name: str, required_type: Optional[Type[T]] = None,
                 args: Optional[Sequence[Any]] = None) -> Any:
        """Return the bean registered under ``name``.

        See ``KotBeansFactory.get_bean``.

        Raises:
            ContainerClosedError: When the context has been closed
        """
        return self.factory.get_bean(name, required_type, args)

    def get_bean_by_type(self, required_type: Type[T]) -> T:
        return self.factory.get_bean_by_type(required_type)

    def get_beans_of_type(self, bean_type: Type[T]) -> Dict[str, T]:
        return self.factory.get_beans_of_type(bean_type)

    def get_bean_names_for_type(self, bean_type: Any) -> List[str]:
        return self.factory.get_bean_names_for_type(bean_type)

    def contains_bean(self, name: str) -> bool:
        return self.factory.contains_bean(name)

    def is_singleton(self, name: str) -> bool:
        return self.factory.is_singleton(name)

    def is_prototype(self, name: str) -> bool:
        return self.factory.is_prototype(name)

    def get_type(self, name: str) -> Optional[type]:
        return self.factory.get_type(name)

    def get_aliases(self, name: str) -> List[str]:
        return self.factory.get_aliases(name)

    def register_scope(self, name: str, scope: Scope) -> None:
        self.factory.register_scope(name, scope)

    def add_post_processor(self, processor: Any) -> None:
        self.factory.add_post_processor(processor)

    def __getitem__(self, name: str) -> Any:
        return self.get_bean(name)

    def __contains__(self, name: str) -> bool:
        return self.contains_bean(name)

    def close(self) -> None:
        """Destroy all singletons and close the context.

        After closing, the context cannot be used for lookups. This method
        is idempotent.

        Example::

            app = KotBeansContext(registry)
            app.refresh()
            # ... use the context ...
            app.close()  # destroy methods run here
        """
        if self._closed:
            return
        self._closed = True
        logger.debug("Closing %r", self)
        self._factory.destroy_singletons()

    @property
    def is_closed(self) -> bool:
        """Check whether the context has been closed.

        Returns:
            True if close() has been called, False otherwise
        """
        return self._closed

    def __enter__(self) -> 'KotBeansContext':
        """Refresh the context unless already refreshed, and return it.

        Example::

            with KotBeansContext(registry) as app:
                service = app.get_bean("service")
            # close() is called automatically
        """
        if not self._refreshed:
            self.refresh()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit context manager and close the context.

        Returns:
            False (exceptions are not suppressed)
        """
        self.close()
        return False

    def __repr__(self):
        state = "closed" if self._closed else ("active" if self._refreshed else "new")
        return f"KotBeansContext({state}, beans={len(self._registry.definition_names())})"
