"""
Type Conversion Tests

Tests for SimpleTypeConverter: literal strings, numbers, enums, paths,
collections and optional targets.
"""

import os
import sys
import unittest
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from kotbeans import ConversionError, SimpleTypeConverter
from fixtures import Gadget, SpecialGadget


class Color(Enum):
    RED = "red"
    GREEN = "green"


class TestSimpleTypeConverter(unittest.TestCase):
    """SimpleTypeConverter"""

    def setUp(self):
        self.converter = SimpleTypeConverter()

    def test_matching_values_are_unchanged(self):
        """Instances of the target are returned as they are"""
        special = SpecialGadget()

        self.assertIs(self.converter.convert(special, Gadget), special)
        self.assertEqual(self.converter.convert(5, int), 5)

    def test_untyped_targets_pass_through(self):
        self.assertEqual(self.converter.convert("x", None), "x")
        self.assertEqual(self.converter.convert("x", Any), "x")

    def test_strings_to_numbers(self):
        self.assertEqual(self.converter.convert(" 42 ", int), 42)
        self.assertEqual(self.converter.convert("2.5", float), 2.5)
        self.assertEqual(self.converter.convert("1+2j", complex), 1 + 2j)
        self.assertEqual(self.converter.convert("0.10", Decimal), Decimal("0.10"))

    def test_strings_to_bool(self):
        for text in ("true", "YES", "on", "1"):
            self.assertIs(self.converter.convert(text, bool), True)
        for text in ("false", "No", "off", "0"):
            self.assertIs(self.converter.convert(text, bool), False)

    def test_invalid_bool_raises(self):
        with self.assertRaises(ConversionError):
            self.converter.convert("maybe", bool)

    def test_strings_to_other_literals(self):
        self.assertEqual(self.converter.convert("/tmp/data", Path), Path("/tmp/data"))
        self.assertEqual(self.converter.convert("abc", bytes), b"abc")

    def test_enums(self):
        """Strings select members by name, other values by value"""
        self.assertIs(self.converter.convert("GREEN", Color), Color.GREEN)
        self.assertIs(self.converter.convert(Color.RED, Color), Color.RED)

    def test_unknown_enum_member_raises(self):
        with self.assertRaises(ConversionError):
            self.converter.convert("BLUE", Color)

    def test_number_widening(self):
        self.assertEqual(self.converter.convert(3, float), 3.0)
        self.assertEqual(self.converter.convert(0.5, Decimal), Decimal("0.5"))

    def test_optional_targets(self):
        """Optional[T] converts to T and keeps None"""
        self.assertEqual(self.converter.convert("7", Optional[int]), 7)
        self.assertIsNone(self.converter.convert(None, Optional[int]))

    def test_collections_convert_elements(self):
        self.assertEqual(self.converter.convert(["1", "2"], List[int]), [1, 2])
        self.assertEqual(self.converter.convert(["1", "1"], Set[int]), {1})
        self.assertEqual(self.converter.convert(["1", "2"], Tuple[int, ...]), (1, 2))
        self.assertEqual(self.converter.convert({"a": "1"}, Dict[str, int]), {"a": 1})

    def test_mismatched_collection_raises(self):
        with self.assertRaises(ConversionError):
            self.converter.convert(["a"], Dict[str, int])

    def test_unconvertible_value_raises(self):
        """Errors keep the value and target type"""
        with self.assertRaises(ConversionError) as ctx:
            self.converter.convert("many", int)

        self.assertEqual(ctx.exception.value, "many")
        self.assertIs(ctx.exception.target_type, int)

    def test_object_to_unrelated_class_raises(self):
        with self.assertRaises(ConversionError):
            self.converter.convert(Gadget(), Color)


if __name__ == '__main__':
    unittest.main()
