"""
DefinitionMerger

Flattens a raw definition and its parent chain into one
``RootBeanDefinition``. Results are cached per bean name until the raw
definition changes or bean creation marks them stale; merges done for
inner definitions are never cached.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from .definition import SCOPE_SINGLETON, BeanDefinition, RootBeanDefinition
from .exceptions import DefinitionStoreError, NoSuchBeanError

logger = logging.getLogger(__name__)

MergedLookup = Callable[[str], RootBeanDefinition]


class DefinitionMerger:
    """Merges definitions with their parents and caches the result.

    Attributes:
        _cache: Merged definitions by bean name
        _lookup: Returns the merged definition of a parent name
        _parent_lookup: Same, but consulting only the parent factory; used
            when a definition names itself as its parent
        cache_enabled: Whether merged definitions are cached at all

    Example::

        merger = DefinitionMerger(factory.get_merged_definition)
        mbd = merger.get_merged_definition("child", registry.get_definition("child"))
    """

    def __init__(self, lookup: MergedLookup,
                 parent_lookup: Optional[MergedLookup] = None,
                 canonical_name: Callable[[str], str] = lambda name: name,
                 cache_enabled: bool = True):
        self._cache: Dict[str, RootBeanDefinition] = {}
        self._lock = threading.RLock()
        self._merging: List[str] = []
        self._lookup = lookup
        self._parent_lookup = parent_lookup
        self._canonical_name = canonical_name
        self.cache_enabled = cache_enabled

    def get_merged_definition(self, name: str, raw: BeanDefinition,
                              containing: Optional[BeanDefinition] = None) -> RootBeanDefinition:
        """Return the merged form of ``raw``.

        Args:
            name: Bean name of the definition
            raw: The raw definition
            containing: Definition of the enclosing bean for inner
                definitions; such merges are not cached

        Returns:
            The merged definition, with scope defaulted to singleton

        Raises:
            DefinitionStoreError: When the parent cannot be found, the parent
                chain is circular, or a definition is its own parent
                without a parent factory
        """
        with self._lock:
            previous = None
            mbd = None
            if containing is None:
                mbd = self._cache.get(name)
            if mbd is not None and not mbd.stale:
                return mbd
            previous = mbd

            if name in self._merging:
                raise DefinitionStoreError(
                    "Circular parent relationship: " + " -> ".join(self._merging + [name]), name
                )
            self._merging.append(name)
            try:
                mbd = self._merge(name, raw)
            finally:
                self._merging.pop()

            if not mbd.scope:
                mbd.scope = SCOPE_SINGLETON
            # An inner bean of a non-singleton cannot outlive its container
            if containing is not None and not containing.is_singleton() and mbd.is_singleton():
                mbd.scope = containing.scope

            if containing is None and self.cache_enabled:
                self._cache[name] = mbd
            if previous is not None:
                _copy_relevant_caches(previous, mbd)
            return mbd

    def _merge(self, name: str, raw: BeanDefinition) -> RootBeanDefinition:
        if raw.parent_name is None:
            return RootBeanDefinition.from_definition(raw)

        parent_name = self._canonical_name(raw.parent_name)
        try:
            if parent_name != name:
                parent = self._lookup(parent_name)
            elif self._parent_lookup is not None:
                parent = self._parent_lookup(parent_name)
            else:
                raise DefinitionStoreError(
                    f"Parent name '{parent_name}' is equal to bean name '{name}': "
                    "cannot be resolved without a parent factory",
                    name,
                )
        except NoSuchBeanError as ex:
            raise DefinitionStoreError(
                f"Could not resolve parent bean definition '{raw.parent_name}'", name, ex
            ) from ex

        mbd = RootBeanDefinition.from_definition(parent)
        try:
            mbd.override_from(raw)
        except ValueError as ex:
            raise DefinitionStoreError(
                f"Could not merge with parent bean definition '{raw.parent_name}': {ex}", name, ex
            ) from ex
        logger.debug("Merged bean definition '%s' with parent '%s'", name, parent_name)
        return mbd

    def get_cached(self, name: str) -> Optional[RootBeanDefinition]:
        return self._cache.get(name)

    def mark_stale(self, name: str) -> None:
        """Force a re-merge of ``name`` on next access."""
        with self._lock:
            mbd = self._cache.get(name)
            if mbd is not None:
                mbd.stale = True

    def remove(self, name: str) -> None:
        with self._lock:
            self._cache.pop(name, None)

    def clear(self, keep: Callable[[str], bool] = lambda name: False) -> None:
        """Mark every cached definition stale unless ``keep(name)`` is true."""
        with self._lock:
            for name, mbd in self._cache.items():
                if not keep(name):
                    mbd.stale = True


def _copy_relevant_caches(previous: RootBeanDefinition, mbd: RootBeanDefinition) -> None:
    if (previous.bean_class is mbd.bean_class
            and previous.bean_class_name == mbd.bean_class_name
            and previous.factory_bean_name == mbd.factory_bean_name
            and previous.factory_method_name == mbd.factory_method_name):
        mbd.resolved_target_type = previous.resolved_target_type
        mbd.resolved_factory_return_type = previous.resolved_factory_return_type
        mbd.is_factory_bean = previous.is_factory_bean
