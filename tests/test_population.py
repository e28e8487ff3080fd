"""
Population Tests

Tests for applying property values to a created bean:
- Autowiring by name and by type
- Dependency checks
- Nested property paths and property setters
- Conversion of literal values and unknown properties
"""

import os
import sys
import unittest
from typing import Optional

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from kotbeans import (
    AutowireMode,
    BeanCreationError,
    DependencyCheck,
    NotWritablePropertyError,
    UnsatisfiedDependencyError,
    ref,
)
from conftest import KotBeansTestCase
from fixtures import Gadget, SpecialGadget, Widget


class Service:
    """Bean with collaborator members and a simple member"""

    gadget: Optional[Gadget] = None
    widget: Optional[Widget] = None
    name: Optional[str] = None
    timeout: int = 30


class Tuned:
    """Bean with a typed property setter"""

    def __init__(self):
        self._level = 0

    @property
    def level(self) -> int:
        return self._level

    @level.setter
    def level(self, value: int) -> None:
        self._level = value


class PlainHolder:
    """Bean declaring its members without annotations"""

    dep = None
    retries = 3

    def describe(self):
        return f"{self.dep!r}"


class TestAutowireByName(KotBeansTestCase):
    """AutowireMode.BY_NAME"""

    def test_members_matching_bean_names_are_set(self):
        """Unset collaborator members get the bean with the same name"""
        self.register("gadget", Gadget)
        self.register("service", Service, autowire_mode=AutowireMode.BY_NAME)

        service = self.factory.get_bean("service")

        self.assertIs(service.gadget, self.factory.get_bean("gadget"))
        self.assertIsNone(service.widget)
        self.assertIn("service", self.factory.registry.get_dependent_beans("gadget"))

    def test_simple_members_are_not_autowired(self):
        """Members of simple types are left alone even if a bean matches"""
        self.register("name", Gadget)
        self.register("service", Service, autowire_mode=AutowireMode.BY_NAME)

        self.assertIsNone(self.factory.get_bean("service").name)

    def test_explicit_property_wins(self):
        """A declared property value is not replaced by autowiring"""
        self.register("gadget", Gadget)
        self.register("special", SpecialGadget)
        self.register("service", Service, autowire_mode=AutowireMode.BY_NAME,
                      property_values={"gadget": ref("special")})

        self.assertIsInstance(self.factory.get_bean("service").gadget, SpecialGadget)


class TestAutowireByType(KotBeansTestCase):
    """AutowireMode.BY_TYPE"""

    def test_single_candidate_is_injected(self):
        """The only bean of the member type is injected"""
        self.register("myGadget", Gadget)
        self.register("service", Service, autowire_mode=AutowireMode.BY_TYPE)

        service = self.factory.get_bean("service")

        self.assertIs(service.gadget, self.factory.get_bean("myGadget"))
        self.assertIn("service", self.factory.registry.get_dependent_beans("myGadget"))

    def test_missing_candidate_is_skipped(self):
        """Members without candidates stay unset"""
        self.register("service", Service, autowire_mode=AutowireMode.BY_TYPE)

        self.assertIsNone(self.factory.get_bean("service").widget)

    def test_several_candidates_raise(self):
        """Several candidates without a primary are ambiguous"""
        self.register("gadget", Gadget)
        self.register("special", SpecialGadget)
        self.register("service", Service, autowire_mode=AutowireMode.BY_TYPE)

        with self.assertRaises(UnsatisfiedDependencyError) as ctx:
            self.factory.get_bean("service")

        self.assertIn("property 'gadget'", str(ctx.exception))
        self.assertIn("expected single matching bean but found 2", str(ctx.exception))

    def test_primary_candidate_wins(self):
        """The primary bean is chosen among several candidates"""
        self.register("gadget", Gadget)
        self.register("special", SpecialGadget, primary=True)
        self.register("service", Service, autowire_mode=AutowireMode.BY_TYPE)

        self.assertIsInstance(self.factory.get_bean("service").gadget, SpecialGadget)

    def test_non_candidates_are_ignored(self):
        """Beans excluded from autowiring are not considered"""
        self.register("gadget", Gadget)
        self.register("special", SpecialGadget, autowire_candidate=False)
        self.register("service", Service, autowire_mode=AutowireMode.BY_TYPE)

        self.assertIs(type(self.factory.get_bean("service").gadget), Gadget)


class TestDependencyCheck(KotBeansTestCase):
    """Dependency check modes"""

    def test_simple_check_requires_simple_members(self):
        """An unset simple member fails the simple check"""
        self.register("service", Service, dependency_check=DependencyCheck.SIMPLE)

        with self.assertRaises(UnsatisfiedDependencyError) as ctx:
            self.factory.get_bean("service")

        self.assertIn("property 'name'", str(ctx.exception))

    def test_objects_check_requires_collaborators(self):
        """An unset collaborator fails the objects check"""
        self.register("service", Service, dependency_check=DependencyCheck.OBJECTS,
                      property_values={"name": "svc"})

        with self.assertRaises(UnsatisfiedDependencyError) as ctx:
            self.factory.get_bean("service")

        self.assertIn("property 'gadget'", str(ctx.exception))

    def test_satisfied_check_passes(self):
        """Setting every member satisfies the full check"""
        self.register("gadget", Gadget)
        self.register("widget", Widget)
        self.register("service", Service, dependency_check=DependencyCheck.ALL,
                      autowire_mode=AutowireMode.BY_NAME, property_values={"name": "svc"})

        service = self.factory.get_bean("service")

        self.assertEqual(service.name, "svc")
        self.assertEqual(service.timeout, 30)


class TestPropertyValues(KotBeansTestCase):
    """Applying property values"""

    def test_literal_values_are_converted(self):
        """Strings are converted to the declared member type"""
        self.register("widget", Widget, property_values={"size": "5"})

        self.assertEqual(self.factory.get_bean("widget").size, 5)

    def test_property_setter_is_used(self):
        """A property with a setter is written through the setter"""
        self.register("tuned", Tuned, property_values={"level": "3"})

        self.assertEqual(self.factory.get_bean("tuned").level, 3)

    def test_instance_attribute_is_writable(self):
        """Public attributes set in __init__ are writable"""
        self.register("widget", Widget, property_values={"label": "custom"})

        self.assertEqual(self.factory.get_bean("widget").label, "custom")

    def test_unannotated_class_attribute_is_writable(self):
        """Class attributes declared without a type accept property values"""
        self.register("gadget", Gadget)
        self.register("holder", PlainHolder, property_values={"dep": ref("gadget"), "retries": "5"})

        holder = self.factory.get_bean("holder")

        self.assertIs(holder.dep, self.factory.get_bean("gadget"))
        self.assertEqual(holder.retries, "5")
        self.assertIn("holder", self.factory.registry.get_dependent_beans("gadget"))

    def test_methods_are_not_writable(self):
        """Methods of the bean class are not property targets"""
        self.register("holder", PlainHolder, property_values={"describe": "x"})

        with self.assertRaises(BeanCreationError) as ctx:
            self.factory.get_bean("holder")

        self.assertIsInstance(ctx.exception.__cause__, NotWritablePropertyError)

    def test_nested_path(self):
        """Dotted paths set members of nested objects"""
        self.register("gadget", Gadget)
        self.register("widget", Widget, property_values={
            "gadget": ref("gadget"), "gadget.name": "renamed",
        })

        self.assertEqual(self.factory.get_bean("widget").gadget.name, "renamed")

    def test_nested_path_through_none_raises(self):
        """A nested path through an unset member fails with the path"""
        self.register("service", Service, property_values={"widget.size": 3})

        with self.assertRaises(BeanCreationError) as ctx:
            self.factory.get_bean("service")

        self.assertEqual(ctx.exception.property_path, "widget.size")

    def test_unknown_property_suggests_names(self):
        """Misspelled properties raise with close matches"""
        self.register("service", Service, property_values={"gadgte": None})

        with self.assertRaises(BeanCreationError) as ctx:
            self.factory.get_bean("service")

        cause = ctx.exception.__cause__
        self.assertIsInstance(cause, NotWritablePropertyError)
        self.assertIn("gadget", cause.possible_matches)
        self.assertIn("Did you mean 'gadget'", str(ctx.exception))

    def test_unconvertible_value_raises(self):
        """A literal that cannot be converted fails with the property path"""
        self.register("widget", Widget, property_values={"size": "big"})

        with self.assertRaises(BeanCreationError) as ctx:
            self.factory.get_bean("widget")

        self.assertEqual(ctx.exception.property_path, "size")


if __name__ == '__main__':
    unittest.main()
