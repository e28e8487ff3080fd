"""
Scope

Custom scopes decide how long a bean instance lives. The factory asks the
registered scope for an instance and hands it a factory to create one when
the scope has none yet. Destruction of scoped beans is deferred to the scope
through destruction callbacks.

``singleton`` and ``prototype`` are built into the factory and cannot be
registered as custom scopes.

Example::

    request_scope = SimpleScope("req-123")
    factory.register_scope("request", request_scope)

    with request_scope:
        ctx = factory.get_bean("requestContext")  # Created and cached
        ctx2 = factory.get_bean("requestContext")  # Same instance
    # Scope closed, destruction callbacks run
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Tuple

from .exceptions import ScopeNotActiveError

logger = logging.getLogger(__name__)


class Scope(ABC):
    """Strategy interface for custom bean scopes."""

    @abstractmethod
    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        """Return the scoped instance for ``name``, creating it if needed.

        Args:
            name: Bean name
            object_factory: Creates a new, fully initialized instance

        Raises:
            ScopeNotActiveError: When the scope cannot provide instances now
        """

    @abstractmethod
    def remove(self, name: str) -> Any:
        """Remove the instance for ``name`` and return it (or None).

        The destruction callback for the name is dropped as well; the
        caller is responsible for destroying the returned instance.
        """

    @abstractmethod
    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        """Run ``callback`` when the instance for ``name`` is destroyed."""


class SimpleScope(Scope):
    """Scope backed by an explicit instance map.

    A SimpleScope represents a single scope instance (e.g., one request or
    one job). Instances are cached until ``close()``, which runs the
    destruction callbacks in reverse registration order.

    Attributes:
        scope_id: Identifier of this scope instance
        _instances: Cache of scoped bean instances
        _callbacks: Destruction callbacks per bean name
        _closed: Whether this scope has been closed
    """

    def __init__(self, scope_id: str = "default"):
        """Initialize an open scope.

        Args:
            scope_id: Identifier of this scope instance, used in messages
        """
        self.scope_id = scope_id
        self._instances: Dict[str, Any] = {}
        self._callbacks: Dict[str, Callable[[], None]] = {}
        self._lock = threading.RLock()
        self._closed = False

    def _ensure_not_closed(self, name: str) -> None:
        if self._closed:
            raise ScopeNotActiveError(
                name,
                f"Scope '{self.scope_id}' has been closed. "
                "Cannot create scoped beans from a closed scope.",
            )

    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        with self._lock:
            self._ensure_not_closed(name)
            if name not in self._instances:
                self._instances[name] = object_factory()
            return self._instances[name]

    def remove(self, name: str) -> Any:
        with self._lock:
            self._callbacks.pop(name, None)
            return self._instances.pop(name, None)

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        with self._lock:
            self._callbacks[name] = callback

    def close(self) -> None:
        """Close this scope and destroy all cached instances.

        After closing, the scope cannot create instances.
        This method is idempotent.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            callbacks = list(self._callbacks.items())
            self._callbacks.clear()
            self._instances.clear()
        _run_callbacks(self.scope_id, callbacks)

    @property
    def is_closed(self) -> bool:
        """Check whether this scope has been closed."""
        return self._closed

    def __enter__(self) -> 'SimpleScope':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class ThreadScope(Scope):
    """Scope with one instance map per thread.

    Each thread sees its own instances. ``clear()`` destroys the instances
    of the calling thread only.
    """

    def __init__(self):
        self._local = threading.local()

    def _state(self) -> Tuple[Dict[str, Any], Dict[str, Callable[[], None]]]:
        if not hasattr(self._local, "instances"):
            self._local.instances = {}
            self._local.callbacks = {}
        return self._local.instances, self._local.callbacks

    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        instances, _ = self._state()
        if name not in instances:
            instances[name] = object_factory()
        return instances[name]

    def remove(self, name: str) -> Any:
        instances, callbacks = self._state()
        callbacks.pop(name, None)
        return instances.pop(name, None)

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        _, callbacks = self._state()
        callbacks[name] = callback

    def clear(self) -> None:
        """Destroy and forget the instances of the calling thread."""
        instances, callbacks = self._state()
        pending = list(callbacks.items())
        callbacks.clear()
        instances.clear()
        _run_callbacks(f"thread-{threading.get_ident()}", pending)


def _run_callbacks(scope_id: str, callbacks: List[Tuple[str, Callable[[], None]]]) -> None:
    for name, callback in reversed(callbacks):
        try:
            callback()
        except Exception:
            logger.warning("Destruction callback for bean '%s' in scope '%s' failed",
                           name, scope_id, exc_info=True)
