"""
DisposableBeanAdapter

Wraps a bean that needs destruction behind a single ``destroy()`` call.
Destruction runs, in order:

1. every ``DestructionHook`` that requires destruction of the bean
2. ``DisposableBean.destroy()``, unless the custom destroy method is
   also called ``destroy``
3. the custom or inferred destroy method, with no argument or with ``True``

The destroy method is validated when the adapter is created, so a broken
destroy method fails bean registration rather than shutdown. Failures at
destroy time are logged and swallowed.
"""

import inspect
import io
import logging
import threading
from typing import Any, Callable, List, Optional, Sequence

from .definition import INFER_METHOD, BeanDefinition
from .exceptions import BeanDefinitionValidationError
from .lifecycle import DisposableBean
from .post_processors import DestructionHook

logger = logging.getLogger(__name__)

_INFERRED_METHOD_NAMES = ("close", "shutdown")


class DisposableBeanAdapter:
    """Destroys one bean instance, at most once.

    Attributes:
        bean: The instance to destroy
        bean_name: Name used in log messages
        destroy_method: Bound custom destroy method, if any
        _hooks: Destruction hooks that asked to see this bean

    Example::

        adapter = DisposableBeanAdapter(bean, "pool", mbd, processors.destruction_hooks)
        registry.register_disposable_bean("pool", adapter)
    """

    def __init__(self, bean: Any, bean_name: str, mbd: Optional[BeanDefinition],
                 hooks: Sequence[DestructionHook] = ()):
        """Create the adapter and validate the destroy method.

        Raises:
            BeanDefinitionValidationError: When a declared destroy method is
                missing and enforced, takes more than one parameter, or
                takes a parameter that is not a bool
        """
        self.bean = bean
        self.bean_name = bean_name
        self._hooks: List[DestructionHook] = [h for h in hooks if h.requires_destruction(bean)]
        self._destroyed = False
        self._lock = threading.Lock()

        method_name = _destroy_method_name(bean, mbd)
        self.invoke_disposable_bean = isinstance(bean, DisposableBean) and method_name != "destroy"
        self.destroy_method: Optional[Callable[..., Any]] = None
        self._pass_flag = False
        if method_name:
            self._resolve_destroy_method(method_name, mbd)

    def _resolve_destroy_method(self, method_name: str, mbd: Optional[BeanDefinition]) -> None:
        method = getattr(self.bean, method_name, None)
        if not callable(method):
            if mbd is not None and mbd.enforce_destroy_method and mbd.destroy_method_name != INFER_METHOD:
                raise BeanDefinitionValidationError(
                    f"Could not find a destroy method named '{method_name}' "
                    f"on bean with name '{self.bean_name}'",
                    self.bean_name,
                )
            logger.warning("Could not find a destroy method named '%s' on bean with name '%s'",
                           method_name, self.bean_name)
            return

        try:
            parameters = list(inspect.signature(method).parameters.values())
        except (TypeError, ValueError):
            parameters = []
        if len(parameters) > 1:
            raise BeanDefinitionValidationError(
                f"Method '{method_name}' of bean '{self.bean_name}' has more than one "
                "parameter - not supported as destroy method",
                self.bean_name,
            )
        if parameters:
            annotation = parameters[0].annotation
            if annotation not in (inspect.Parameter.empty, bool, "bool"):
                raise BeanDefinitionValidationError(
                    f"Method '{method_name}' of bean '{self.bean_name}' has a non-boolean "
                    "parameter - not supported as destroy method",
                    self.bean_name,
                )
            self._pass_flag = True
        self.destroy_method = method

    def destroy(self) -> None:
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True

        for hook in self._hooks:
            try:
                hook.post_process_before_destruction(self.bean, self.bean_name)
            except Exception:
                logger.warning("Destruction hook %r failed for bean '%s'",
                               hook, self.bean_name, exc_info=True)

        if self.invoke_disposable_bean:
            logger.debug("Invoking destroy() on bean with name '%s'", self.bean_name)
            try:
                self.bean.destroy()
            except Exception:
                logger.warning("Invocation of destroy method failed on bean with name '%s'",
                               self.bean_name, exc_info=True)

        if self.destroy_method is not None:
            logger.debug("Invoking destroy method '%s' on bean with name '%s'",
                         self.destroy_method.__name__, self.bean_name)
            try:
                if self._pass_flag:
                    self.destroy_method(True)
                else:
                    self.destroy_method()
            except Exception:
                logger.warning("Invocation of destroy method '%s' failed on bean with name '%s'",
                               self.destroy_method.__name__, self.bean_name, exc_info=True)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def __call__(self) -> None:
        self.destroy()

    def __repr__(self):
        return f"DisposableBeanAdapter({self.bean_name!r})"

    @staticmethod
    def has_destroy_method(bean: Any, mbd: Optional[BeanDefinition]) -> bool:
        """Whether ``bean`` has a destroy callback of its own."""
        return isinstance(bean, DisposableBean) or _destroy_method_name(bean, mbd) is not None

    @staticmethod
    def requires_destruction(bean: Any, mbd: Optional[BeanDefinition],
                             hooks: Sequence[DestructionHook] = ()) -> bool:
        """Whether an adapter must be registered for ``bean``."""
        if DisposableBeanAdapter.has_destroy_method(bean, mbd):
            return True
        return any(h.requires_destruction(bean) for h in hooks)


def _destroy_method_name(bean: Any, mbd: Optional[BeanDefinition]) -> Optional[str]:
    declared = mbd.destroy_method_name if mbd is not None else None
    if declared == INFER_METHOD or (declared is None and _is_closeable(bean)):
        if isinstance(bean, DisposableBean):
            return None
        for candidate in _INFERRED_METHOD_NAMES:
            if callable(getattr(bean, candidate, None)):
                return candidate
        return None
    return declared or None


def _is_closeable(bean: Any) -> bool:
    if not callable(getattr(bean, "close", None)):
        return False
    return isinstance(bean, io.IOBase) or hasattr(type(bean), "__exit__")
