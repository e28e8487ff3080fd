"""
SingletonRegistry

This module provides the shared-instance registry behind every factory.
It is responsible for:

- Holding one slot per singleton name, moving monotonically through
  ``Empty -> EarlyFactory -> EarlyExposed -> Finished``
- Single-flight creation: one thread creates a singleton, others wait
- Early references that let property cycles between singletons resolve
- Dependency edges between beans (for cycle checks and destruction order)
- Disposable beans and their destruction at shutdown

Finished singletons are read without taking any lock.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .creation_context import CreationContext
from .exceptions import (
    BeanCreationError,
    BeanCreationNotAllowedError,
    CurrentlyInCreationError,
    IllegalStateError,
)

logger = logging.getLogger(__name__)


class Empty:
    """No instance and no creation in progress"""

    rank = 0

    def __repr__(self):
        return "Empty"


class EarlyFactory:
    """Creation in progress; calling ``supplier`` yields an early reference"""

    rank = 1

    def __init__(self, supplier: Callable[[], Any]):
        self.supplier = supplier

    def __repr__(self):
        return "EarlyFactory"


class EarlyExposed:
    """Creation in progress; ``value`` has been handed out to other beans"""

    rank = 2

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self):
        return f"EarlyExposed({self.value!r})"


class Finished:
    """Terminal state holding the fully initialized singleton"""

    rank = 3

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self):
        return f"Finished({self.value!r})"


Slot = Union[Empty, EarlyFactory, EarlyExposed, Finished]

EMPTY = Empty()

_ALLOWED_TRANSITIONS = {
    Empty: (EarlyFactory, Finished),
    EarlyFactory: (EarlyExposed, Finished),
    EarlyExposed: (Finished,),
    Finished: (),
}


def transition(name: str, current: Slot, target: Slot) -> Slot:
    """Validate a slot transition and return the new slot.

    Args:
        name: Bean name, for the error message
        current: The slot currently held for the name
        target: The slot to move to

    Returns:
        ``target``

    Raises:
        IllegalStateError: When the move is not one of the documented
            forward transitions
    """
    if type(target) not in _ALLOWED_TRANSITIONS[type(current)]:
        raise IllegalStateError(
            f"Illegal singleton state transition for bean '{name}': "
            f"{current!r} -> {type(target).__name__}"
        )
    return target


class SingletonRegistry:
    """Registry of shared bean instances.

    Attributes:
        _slots: Slot per bean name
        _mutex: Guards every map below; never held while user code runs,
            except for early-reference suppliers
        _creation_locks: One re-entrant lock per singleton name
        _lock_owners: Thread and depth holding each creation lock
        _waiting_for: Name each blocked thread waits for (deadlock check)

    Example::

        registry = SingletonRegistry()
        ctx = CreationContext()
        service = registry.get_or_create_singleton("service", lambda: Service(), ctx)
        registry.get_singleton("service") is service  # True
    """

    def __init__(self):
        self._slots: Dict[str, Slot] = {}
        self._mutex = threading.RLock()
        self._creation_locks: Dict[str, threading.RLock] = {}
        self._lock_owners: Dict[str, Tuple[int, int]] = {}
        self._waiting_for: Dict[int, str] = {}
        self._registered_order: Dict[str, None] = {}
        self._dependent_beans: Dict[str, Dict[str, None]] = {}
        self._dependencies_for_bean: Dict[str, Dict[str, None]] = {}
        self._contained_beans: Dict[str, Dict[str, None]] = {}
        self._disposable_beans: Dict[str, Any] = {}
        self._in_destruction = False

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def slot(self, name: str) -> Slot:
        return self._slots.get(name, EMPTY)

    def get_singleton(self, name: str, allow_early_reference: bool = False) -> Any:
        """Return the singleton registered under ``name``, or None.

        Args:
            name: Canonical bean name
            allow_early_reference: Also return an early reference of a
                singleton in creation, invoking its early factory if needed.
                Only callers inside the creating call chain may pass True.

        Returns:
            The finished (or early) instance, or None if there is none
        """
        slot = self._slots.get(name)
        if isinstance(slot, Finished):
            return slot.value
        if slot is None or not allow_early_reference:
            return None
        if isinstance(slot, EarlyExposed):
            return slot.value
        with self._mutex:
            slot = self._slots.get(name)
        if isinstance(slot, (EarlyExposed, Finished)):
            return slot.value
        if not isinstance(slot, EarlyFactory):
            return None
        # The supplier runs hooks that may look up other beans.
        value = slot.supplier()
        with self._mutex:
            current = self._slots.get(name)
            if current is slot:
                self._set(name, EarlyExposed(value))
                return value
        if isinstance(current, (EarlyExposed, Finished)):
            return current.value
        return value

    def get_exposed_early_reference(self, name: str) -> Any:
        """Return the early reference handed out for ``name``, if any."""
        slot = self._slots.get(name)
        return slot.value if isinstance(slot, EarlyExposed) else None

    def add_singleton_factory(self, name: str, supplier: Callable[[], Any]) -> None:
        """Install the early-reference supplier of a singleton in creation."""
        with self._mutex:
            if isinstance(self._slots.get(name), Finished):
                return
            self._set(name, EarlyFactory(supplier))

    def add_singleton(self, name: str, value: Any) -> None:
        """Store a finished singleton, completing its slot."""
        with self._mutex:
            self._set(name, Finished(value))
            self._registered_order[name] = None

    def register_singleton(self, name: str, value: Any) -> None:
        """Register an existing object as a finished singleton.

        Raises:
            IllegalStateError: When a singleton is already bound to the name
        """
        with self._mutex:
            existing = self._slots.get(name)
            if isinstance(existing, Finished):
                raise IllegalStateError(
                    f"Could not register object [{value!r}] under bean name '{name}': "
                    f"there is already object [{existing.value!r}] bound"
                )
            self.add_singleton(name, value)

    def remove_singleton(self, name: str) -> None:
        with self._mutex:
            self._slots.pop(name, None)
            self._registered_order.pop(name, None)

    def contains_singleton(self, name: str) -> bool:
        return isinstance(self._slots.get(name), Finished)

    def singleton_names(self) -> List[str]:
        with self._mutex:
            return list(self._registered_order)

    def _set(self, name: str, target: Slot) -> None:
        self._slots[name] = transition(name, self._slots.get(name, EMPTY), target)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def get_or_create_singleton(self, name: str, creator: Callable[[], Any],
                                ctx: CreationContext) -> Any:
        """Return the singleton ``name``, creating it with ``creator`` once.

        Only one thread runs ``creator`` for a given name; other threads
        asking for the same name block until it finishes and then see the
        result (or, if it failed, create it themselves). Names are locked
        independently. If waiting would deadlock two threads that each
        create a bean the other needs, the early reference is returned
        instead, or CurrentlyInCreationError is raised when there is none.

        Args:
            name: Canonical bean name
            creator: Builds the fully initialized instance
            ctx: Creation context of the calling chain

        Returns:
            The finished singleton

        Raises:
            CurrentlyInCreationError: When ``name`` is already being created
                by this chain and no early reference exists
            BeanCreationNotAllowedError: While singletons are destroyed
        """
        slot = self._slots.get(name)
        if isinstance(slot, Finished):
            return slot.value

        if not self._acquire_creation_lock(name):
            early = self.get_singleton(name, allow_early_reference=True)
            if early is not None:
                return early
            raise CurrentlyInCreationError(
                name,
                "Requested bean is currently in creation on another thread "
                "which is waiting for a bean this thread is creating",
            )
        try:
            slot = self._slots.get(name)
            if isinstance(slot, Finished):
                return slot.value
            if self._in_destruction:
                raise BeanCreationNotAllowedError(
                    name,
                    "Singleton bean creation not allowed while singletons of this factory "
                    "are in destruction (Do not request a bean from a factory in a destroy "
                    "method implementation!)",
                )
            logger.debug("Creating shared instance of singleton bean '%s'", name)
            ctx.before_singleton_creation(name)
            suppressed_mark = len(ctx.suppressed)
            try:
                value = creator()
            except BeanCreationError as ex:
                self.rollback(name)
                for suppressed in ctx.suppressed[suppressed_mark:]:
                    ex.add_related_cause(suppressed)
                raise
            except BaseException:
                self.rollback(name)
                raise
            finally:
                ctx.after_singleton_creation(name)
            self.add_singleton(name, value)
            return value
        finally:
            self._release_creation_lock(name)

    def rollback(self, name: str) -> None:
        """Forget any slot of a singleton whose creation failed."""
        with self._mutex:
            if name in self._slots:
                logger.debug("Rolling back singleton slot of bean '%s'", name)
            self.remove_singleton(name)

    def _acquire_creation_lock(self, name: str) -> bool:
        me = threading.get_ident()
        with self._mutex:
            lock = self._creation_locks.setdefault(name, threading.RLock())
        if not lock.acquire(blocking=False):
            with self._mutex:
                if self._would_deadlock(name, me):
                    return False
                self._waiting_for[me] = name
            try:
                lock.acquire()
            finally:
                with self._mutex:
                    self._waiting_for.pop(me, None)
        with self._mutex:
            owner, depth = self._lock_owners.get(name, (me, 0))
            self._lock_owners[name] = (me, depth + 1)
        return True

    def _release_creation_lock(self, name: str) -> None:
        with self._mutex:
            owner, depth = self._lock_owners[name]
            if depth <= 1:
                del self._lock_owners[name]
            else:
                self._lock_owners[name] = (owner, depth - 1)
            lock = self._creation_locks[name]
        lock.release()

    def _would_deadlock(self, name: str, me: int) -> bool:
        seen = set()
        current: Optional[str] = name
        while current is not None and current not in seen:
            seen.add(current)
            owner = self._lock_owners.get(current)
            if owner is None:
                return False
            if owner[0] == me:
                return True
            current = self._waiting_for.get(owner[0])
        return False

    # ------------------------------------------------------------------
    # Dependency edges
    # ------------------------------------------------------------------

    def register_dependent_bean(self, bean_name: str, dependent_name: str) -> None:
        """Record that ``dependent_name`` depends on ``bean_name``."""
        with self._mutex:
            self._dependent_beans.setdefault(bean_name, {})[dependent_name] = None
            self._dependencies_for_bean.setdefault(dependent_name, {})[bean_name] = None

    def register_contained_bean(self, contained_name: str, containing_name: str) -> None:
        """Record an inner bean; it is destroyed after its container."""
        with self._mutex:
            contained = self._contained_beans.setdefault(containing_name, {})
            if contained_name in contained:
                return
            contained[contained_name] = None
        self.register_dependent_bean(contained_name, containing_name)

    def is_dependent(self, bean_name: str, dependent_name: str) -> bool:
        """Whether ``dependent_name`` depends on ``bean_name``, transitively."""
        with self._mutex:
            return self._is_dependent(bean_name, dependent_name, set())

    def _is_dependent(self, bean_name: str, dependent_name: str, seen: set) -> bool:
        if bean_name in seen:
            return False
        dependents = self._dependent_beans.get(bean_name)
        if not dependents:
            return False
        if dependent_name in dependents:
            return True
        seen.add(bean_name)
        return any(self._is_dependent(d, dependent_name, seen) for d in dependents)

    def has_dependent_bean(self, bean_name: str) -> bool:
        return bool(self._dependent_beans.get(bean_name))

    def get_dependent_beans(self, bean_name: str) -> List[str]:
        with self._mutex:
            return list(self._dependent_beans.get(bean_name, ()))

    def get_dependencies_for_bean(self, bean_name: str) -> List[str]:
        with self._mutex:
            return list(self._dependencies_for_bean.get(bean_name, ()))

    # ------------------------------------------------------------------
    # Destruction
    # ------------------------------------------------------------------

    def register_disposable_bean(self, name: str, disposable: Any) -> None:
        """Register an object with a ``destroy()`` method for ``name``."""
        with self._mutex:
            self._disposable_beans[name] = disposable

    def has_disposable_bean(self, name: str) -> bool:
        return name in self._disposable_beans

    @property
    def in_destruction(self) -> bool:
        return self._in_destruction

    def destroy_singletons(self) -> None:
        """Destroy every disposable singleton, newest first, and clear."""
        logger.debug("Destroying singletons in %r", self)
        with self._mutex:
            self._in_destruction = True
            names = list(self._disposable_beans)
        try:
            for name in reversed(names):
                self.destroy_singleton(name)
        finally:
            with self._mutex:
                self._contained_beans.clear()
                self._dependent_beans.clear()
                self._dependencies_for_bean.clear()
                self._slots.clear()
                self._registered_order.clear()
                self._in_destruction = False

    def destroy_singleton(self, name: str) -> None:
        """Remove ``name`` and destroy it together with its dependents."""
        self.remove_singleton(name)
        with self._mutex:
            disposable = self._disposable_beans.pop(name, None)
        self._destroy_bean(name, disposable)

    def _destroy_bean(self, name: str, disposable: Any) -> None:
        with self._mutex:
            dependents = list(self._dependent_beans.pop(name, ()))
        if dependents:
            logger.debug("Retrieved dependent beans for bean '%s': %s", name, dependents)
        for dependent in dependents:
            self.destroy_singleton(dependent)

        if disposable is not None:
            try:
                disposable.destroy()
            except Exception:
                logger.warning("Destruction of bean with name '%s' threw an exception",
                               name, exc_info=True)

        with self._mutex:
            contained = list(self._contained_beans.pop(name, ()))
        for contained_name in contained:
            self.destroy_singleton(contained_name)

        with self._mutex:
            for other in list(self._dependent_beans):
                self._dependent_beans[other].pop(name, None)
                if not self._dependent_beans[other]:
                    del self._dependent_beans[other]
            self._dependencies_for_bean.pop(name, None)
