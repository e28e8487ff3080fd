"""
Conversion

Collaborators that turn declared values into the values a bean needs:

- ``TypeConverter`` converts a value to a declared target type
- ``ExpressionEvaluator`` evaluates string literals before conversion
  (optional; the factory ships no evaluator of its own)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import PurePath
from typing import TYPE_CHECKING, Any, Optional

from .exceptions import ConversionError
from .introspection import collection_element, is_instance, unwrap_optional

if TYPE_CHECKING:
    from .factory import KotBeansFactory

_TRUE_VALUES = {"true", "on", "yes", "1"}
_FALSE_VALUES = {"false", "off", "no", "0"}


class TypeConverter(ABC):
    """Converts values to declared target types."""

    @abstractmethod
    def convert(self, value: Any, target_type: Any) -> Any:
        """Return ``value`` converted to ``target_type``.

        Raises:
            ConversionError: When the value cannot be converted
        """


class SimpleTypeConverter(TypeConverter):
    """Converter for the literal types commonly declared in definitions.

    Values that already match the target are returned unchanged. Strings
    convert to ``int``, ``float``, ``bool``, ``complex``, ``Decimal``,
    ``Path``, ``bytes`` and ``Enum`` members (by name). Lists, sets and
    tuples convert element-wise for ``List[T]``-style targets.

    Example::

        converter = SimpleTypeConverter()
        converter.convert("42", int)       # 42
        converter.convert("yes", bool)     # True
        converter.convert(["1", "2"], List[int])  # [1, 2]
    """

    def convert(self, value: Any, target_type: Any) -> Any:
        if target_type is None or target_type is Any:
            return value
        target, _ = unwrap_optional(target_type)
        if value is None:
            return None

        container, element = collection_element(target)
        if container is not None and isinstance(value, (list, set, frozenset, tuple, dict)):
            return self._convert_collection(value, container, element, target_type)

        if is_instance(value, target):
            return value
        if not isinstance(target, type):
            return value
        if isinstance(value, str):
            return self._convert_string(value, target)
        if target is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        if target is Decimal and isinstance(value, (int, float)):
            return Decimal(str(value))
        if issubclass(target, Enum):
            try:
                return target(value)
            except ValueError as ex:
                raise ConversionError(value, target_type) from ex
        raise ConversionError(value, target_type)

    def _convert_string(self, value: str, target: type) -> Any:
        text = value.strip()
        try:
            if target is bool:
                lowered = text.lower()
                if lowered in _TRUE_VALUES:
                    return True
                if lowered in _FALSE_VALUES:
                    return False
                raise ValueError(f"Invalid boolean value '{value}'")
            if target in (int, float, complex):
                return target(text)
            if target is Decimal:
                return Decimal(text)
            if issubclass(target, PurePath):
                return target(value)
            if target is bytes:
                return value.encode("utf-8")
            if issubclass(target, Enum):
                return target[text]
        except (ValueError, KeyError, InvalidOperation) as ex:
            raise ConversionError(value, target) from ex
        raise ConversionError(value, target)

    def _convert_collection(self, value: Any, container: type, element: Any, target_type: Any) -> Any:
        if container is dict:
            if not isinstance(value, dict):
                raise ConversionError(value, target_type)
            return {k: self.convert(v, element) for k, v in value.items()}
        if isinstance(value, dict):
            raise ConversionError(value, target_type)
        return container(self.convert(v, element) for v in value)


@dataclass
class EvaluationContext:
    """What an expression may refer to while it is evaluated.

    Attributes:
        factory: The factory creating the bean
        bean_name: Name of the bean whose value is being resolved
        scope: Scope name of that bean
    """
    factory: 'KotBeansFactory'
    bean_name: Optional[str] = None
    scope: Optional[str] = None

    def get_bean(self, name: str) -> Any:
        return self.factory.get_bean(name)


class ExpressionEvaluator(ABC):
    """Evaluates string values of definitions, e.g. ``"#{settings.url}"``.

    Implementations return the value unchanged when it is not an
    expression.
    """

    @abstractmethod
    def evaluate(self, value: str, context: EvaluationContext) -> Any:
        """Return the evaluation result of ``value``."""

