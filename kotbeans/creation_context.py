"""
CreationContext

This module provides the per-call-chain state of bean creation.
The CreationContext tracks:

- Singletons currently being created by this call chain
- Prototypes currently being created by this call chain
- The construction path (for cycle messages such as ``a -> b -> a``)

The factory passes the context explicitly through every internal call.
It is additionally bound to a ContextVar while a top-level request runs,
so that user code calling back into the factory (for example from an
``after_properties_set`` method) joins the chain that is already in
progress instead of starting an unrelated one. Concurrent requests on
other threads or tasks never see each other's context.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, List, Optional, Set

from .exceptions import CurrentlyInCreationError

SUPPRESSED_ERRORS_LIMIT = 100


class CreationContext:
    """Creation state of one logical call chain.

    Attributes:
        singletons_in_creation: Names of singletons being created
        prototypes_in_creation: Names of non-singletons being created
        path: Names in the order their creation started
        suppressed: Errors tolerated during creation, attached to a later failure

    Example (internal usage)::

        ctx = CreationContext()
        ctx.before_singleton_creation("a")
        ctx.before_singleton_creation("b")
        ctx.before_singleton_creation("a")  # Raises CurrentlyInCreationError
    """

    def __init__(self):
        """Initialize an empty context with nothing in creation."""
        self.singletons_in_creation: Set[str] = set()
        self.prototypes_in_creation: Set[str] = set()
        self.path: List[str] = []
        self.suppressed: List[BaseException] = []

    def on_suppressed_error(self, error: BaseException) -> None:
        """Remember an error that was tolerated but may explain a later failure."""
        if len(self.suppressed) < SUPPRESSED_ERRORS_LIMIT:
            self.suppressed.append(error)

    def is_singleton_in_creation(self, name: str) -> bool:
        return name in self.singletons_in_creation

    def is_prototype_in_creation(self, name: str) -> bool:
        return name in self.prototypes_in_creation

    def is_in_creation(self, name: str) -> bool:
        return name in self.singletons_in_creation or name in self.prototypes_in_creation

    def before_singleton_creation(self, name: str) -> None:
        """Mark a singleton as being created by this chain.

        Raises:
            CurrentlyInCreationError: When the singleton is already being
                created by this chain, i.e. an unresolvable cycle
        """
        if name in self.singletons_in_creation:
            raise CurrentlyInCreationError(name, cycle=self.describe_cycle(name))
        self.singletons_in_creation.add(name)
        self.path.append(name)

    def after_singleton_creation(self, name: str) -> None:
        self.singletons_in_creation.discard(name)
        self._pop(name)

    def before_prototype_creation(self, name: str) -> None:
        """Mark a prototype as being created by this chain.

        Raises:
            CurrentlyInCreationError: When the prototype is already being
                created, which is always fatal
        """
        if name in self.prototypes_in_creation:
            raise CurrentlyInCreationError(name, cycle=self.describe_cycle(name))
        self.prototypes_in_creation.add(name)
        self.path.append(name)

    def after_prototype_creation(self, name: str) -> None:
        self.prototypes_in_creation.discard(name)
        self._pop(name)

    def describe_cycle(self, name: str) -> List[str]:
        """Return the part of the path that closes a cycle on ``name``."""
        if name in self.path:
            start = self.path.index(name)
            return self.path[start:] + [name]
        return [name]

    def _pop(self, name: str) -> None:
        # Remove the latest occurrence; creation may unwind out of order on errors
        for index in range(len(self.path) - 1, -1, -1):
            if self.path[index] == name:
                del self.path[index]
                return

    @staticmethod
    def current(owner: Any) -> Optional['CreationContext']:
        """Return the context ``owner`` bound to the running call chain, if any."""
        bound = _creation_context.get()
        return bound.get(owner) if bound else None

    @contextmanager
    def activate(self, owner: Any) -> Iterator['CreationContext']:
        """Bind this context to the running call chain for ``owner`` during the block.

        Each factory keeps its own context, so a child factory delegating to
        its parent never sees the parent's beans as in creation.
        """
        bound = dict(_creation_context.get() or {})
        bound[owner] = self
        token = _creation_context.set(bound)
        try:
            yield self
        finally:
            _creation_context.reset(token)


# Creation contexts of the running call chain by owning factory, set only while a request runs
_creation_context: ContextVar[Optional[Dict[Any, CreationContext]]] = ContextVar(
    '_KOT_BEANS_CREATION_CONTEXT',
    default=None
)
