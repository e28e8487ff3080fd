"""
AliasRegistry

Maps alias names to canonical bean names. Aliases may point to other
aliases; resolution follows the chain until it reaches a name that is not
an alias.
"""

import threading
from typing import Dict, List

from .exceptions import IllegalStateError


class AliasRegistry:
    """Registry of bean name aliases.

    Example::

        aliases = AliasRegistry()
        aliases.register_alias("dataSource", "db")
        aliases.register_alias("db", "primaryDb")
        aliases.canonical_name("primaryDb")  # "dataSource"
    """

    def __init__(self, allow_overriding: bool = True):
        self._aliases: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._allow_overriding = allow_overriding

    def register_alias(self, name: str, alias: str) -> None:
        """Register ``alias`` for ``name``.

        Registering a name as its own alias removes any alias of that name.

        Raises:
            ValueError: When either name is empty
            IllegalStateError: When the alias is taken by another name and
                overriding is disabled, or when it would create a cycle
        """
        if not name or not alias:
            raise ValueError("'name' and 'alias' must not be empty")
        with self._lock:
            if alias == name:
                self._aliases.pop(alias, None)
                return
            registered = self._aliases.get(alias)
            if registered is not None:
                if registered == name:
                    return
                if not self._allow_overriding:
                    raise IllegalStateError(
                        f"Cannot define alias '{alias}' for name '{name}': "
                        f"It is already registered for name '{registered}'."
                    )
            if self._has_alias(alias, name):
                raise IllegalStateError(
                    f"Cannot register alias '{alias}' for name '{name}': "
                    f"Circular reference - '{name}' is a direct or indirect alias "
                    f"for '{alias}' already"
                )
            self._aliases[alias] = name

    def _has_alias(self, name: str, alias: str) -> bool:
        for registered_alias, registered_name in self._aliases.items():
            if registered_name == name:
                if registered_alias == alias or self._has_alias(registered_alias, alias):
                    return True
        return False

    def remove_alias(self, alias: str) -> None:
        """Remove ``alias``.

        Raises:
            IllegalStateError: When no such alias is registered
        """
        with self._lock:
            if self._aliases.pop(alias, None) is None:
                raise IllegalStateError(f"No alias '{alias}' registered")

    def is_alias(self, name: str) -> bool:
        return name in self._aliases

    def get_aliases(self, name: str) -> List[str]:
        """Return all aliases of ``name``, including aliases of aliases."""
        with self._lock:
            result: List[str] = []
            self._collect_aliases(name, result)
            return result

    def _collect_aliases(self, name: str, result: List[str]) -> None:
        for alias, registered_name in self._aliases.items():
            if registered_name == name and alias not in result:
                result.append(alias)
                self._collect_aliases(alias, result)

    def canonical_name(self, name: str) -> str:
        """Resolve ``name`` through the alias chain."""
        canonical = name
        while True:
            resolved = self._aliases.get(canonical)
            if resolved is None:
                return canonical
            canonical = resolved
