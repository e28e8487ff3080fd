"""
Instantiation Tests

Tests for creating the raw instance of a bean:
- Constructor argument matching (indexed, named, generic)
- Greedy constructor selection and alternative constructors
- Constructor autowiring
- Explicit arguments, instance suppliers and factory methods
- Ambiguity between equally matching candidates
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from kotbeans import (
    AmbiguousFactoryMethodError,
    AutowireMode,
    BeanCreationError,
    BeanDefinition,
    BeanDefinitionValidationError,
    BeanInstantiationError,
    FactoryConfig,
    LookupOverride,
    SCOPE_PROTOTYPE,
    UnsatisfiedDependencyError,
    constructor,
    overload_of,
    ref,
)
from conftest import KotBeansTestCase
from fixtures import Assembly, Connection, Connections, Endpoint, Gadget, Sized, Widget


class Client:
    """Constructor needing a collaborator, plus a URL-only alternative"""

    def __init__(self, host: str, gadget: Gadget):
        self.host = host
        self.gadget = gadget
        self.via = "init"

    @classmethod
    @constructor
    def from_url(cls, url: str) -> 'Client':
        client = cls(url, None)
        client.via = "from_url"
        return client


class Tie:
    """Two one-argument constructors that match None equally well"""

    def __init__(self, value: str):
        self.via = "init"

    @classmethod
    @constructor
    def of_bytes(cls, value: bytes) -> 'Tie':
        tie = cls("")
        tie.via = "of_bytes"
        return tie


class Factories:
    """Factory bean with an overloaded factory method"""

    def create(self, value: str) -> Gadget:
        return Gadget()

    @overload_of("create")
    def create_from_bytes(self, value: bytes) -> Gadget:
        return Gadget()


class Exploding:
    def __init__(self):
        raise ValueError("cannot build")


class TestConstructorArguments(KotBeansTestCase):
    """Matching declared constructor arguments to parameters"""

    def test_generic_argument_and_default(self):
        """Unfilled parameters with defaults keep the default"""
        definition = self.register("sized", Sized)
        definition.constructor_args.add_generic("small")

        sized = self.factory.get_bean("sized")

        self.assertEqual(sized.name, "small")
        self.assertEqual(sized.size, 1)

    def test_indexed_arguments_are_converted(self):
        """Indexed string arguments are converted to the parameter type"""
        definition = self.register("sized", Sized)
        definition.constructor_args.add_indexed(0, "large")
        definition.constructor_args.add_indexed(1, "42")

        sized = self.factory.get_bean("sized")

        self.assertEqual(sized.size, 42)

    def test_named_arguments_match_by_name(self):
        """Named generic arguments go to the parameter with that name"""
        definition = self.register("sized", Sized)
        definition.constructor_args.add_generic("7", name="size")
        definition.constructor_args.add_generic("named", name="name")

        sized = self.factory.get_bean("sized")

        self.assertEqual((sized.name, sized.size), ("named", 7))

    def test_generic_arguments_in_declaration_order(self):
        """Untyped generic literals fill parameters in order"""
        definition = self.register("endpoint", Endpoint)
        for value in ("localhost", "8080", "true"):
            definition.constructor_args.add_generic(value)

        endpoint = self.factory.get_bean("endpoint")

        self.assertEqual(endpoint.host, "localhost")
        self.assertEqual(endpoint.port, 8080)
        self.assertIs(endpoint.secure, True)

    def test_reference_argument(self):
        """A reference argument is resolved and recorded as a dependency"""
        self.register("gadget", Gadget)
        self.register("widget", Widget)
        definition = self.register("assembly", Assembly)
        definition.constructor_args.add_indexed(0, ref("gadget"))
        definition.constructor_args.add_indexed(1, ref("widget"))

        assembly = self.factory.get_bean("assembly")

        self.assertIs(assembly.gadget, self.factory.get_bean("gadget"))
        self.assertIn("assembly", self.factory.registry.get_dependent_beans("widget"))

    def test_unusable_argument_raises(self):
        """A bean with more arguments than any constructor accepts fails"""
        definition = self.register("gadget", Gadget)
        definition.constructor_args.add_generic("extra")

        with self.assertRaises(BeanCreationError) as ctx:
            self.factory.get_bean("gadget")

        self.assertIn("Could not resolve matching constructor", str(ctx.exception))

    def test_missing_argument_without_autowiring(self):
        """Collaborator parameters are not filled without constructor autowiring"""
        self.register("assembly", Assembly)

        with self.assertRaises(UnsatisfiedDependencyError) as ctx:
            self.factory.get_bean("assembly")

        self.assertIn("enable constructor autowiring", str(ctx.exception))

    def test_constructor_exception_is_wrapped(self):
        """An exception raised by the constructor becomes BeanInstantiationError"""
        self.register("exploding", Exploding)

        with self.assertRaises(BeanInstantiationError) as ctx:
            self.factory.get_bean("exploding")

        self.assertIn("Constructor threw exception", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, ValueError)
        self.assertFalse(self.factory.registry.contains_singleton("exploding"))


class TestConstructorSelection(KotBeansTestCase):
    """Greedy choice among several constructors"""

    def test_falls_back_to_satisfiable_constructor(self):
        """The greediest constructor that can be satisfied wins"""
        definition = self.register("client", Client)
        definition.constructor_args.add_generic("http://example")

        client = self.factory.get_bean("client")

        self.assertEqual(client.via, "from_url")
        self.assertEqual(client.host, "http://example")

    def test_autowiring_enables_greedier_constructor(self):
        """With autowiring the two-parameter constructor is satisfiable"""
        self.register("gadget", Gadget)
        definition = self.register("client", Client, autowire_mode=AutowireMode.CONSTRUCTOR)
        definition.constructor_args.add_generic("http://example")

        client = self.factory.get_bean("client")

        self.assertEqual(client.via, "init")
        self.assertIs(client.gadget, self.factory.get_bean("gadget"))
        self.assertIn("client", self.factory.registry.get_dependent_beans("gadget"))

    def test_chosen_constructor_is_cached(self):
        """The chosen constructor is reused for later prototypes"""
        definition = self.register("client", Client, scope=SCOPE_PROTOTYPE)
        definition.constructor_args.add_generic("http://example")

        self.factory.get_bean("client")
        cached = self.factory.get_merged_definition("client").resolved_executable

        self.assertEqual(cached.name, "Client.from_url")
        self.assertEqual(self.factory.get_bean("client").via, "from_url")

    def test_lenient_tie_picks_first(self):
        """Equally matching constructors resolve to the first one by default"""
        definition = self.register("tie", Tie)
        definition.constructor_args.add_generic(None)

        self.assertEqual(self.factory.get_bean("tie").via, "init")


class TestStrictConstructorSelection(KotBeansTestCase):
    """Strict constructor resolution"""

    config = FactoryConfig(lenient_constructor_resolution=False)

    def test_strict_tie_raises(self):
        """Equally matching constructors are ambiguous in strict mode"""
        definition = self.register("tie", Tie)
        definition.constructor_args.add_generic(None)

        with self.assertRaises(AmbiguousFactoryMethodError) as ctx:
            self.factory.get_bean("tie")

        self.assertEqual(len(ctx.exception.candidates), 2)


class TestConstructorAutowiring(KotBeansTestCase):
    """AutowireMode.CONSTRUCTOR"""

    def test_parameters_are_resolved_by_type(self):
        """Each collaborator parameter gets the single bean of its type"""
        self.register("gadget", Gadget)
        self.register("widget", Widget)
        self.register("assembly", Assembly, autowire_mode=AutowireMode.CONSTRUCTOR)

        assembly = self.factory.get_bean("assembly")

        self.assertIsInstance(assembly.gadget, Gadget)
        self.assertIsInstance(assembly.widget, Widget)

    def test_missing_collaborator_raises(self):
        """A required collaborator without candidates fails"""
        self.register("gadget", Gadget)
        self.register("assembly", Assembly, autowire_mode=AutowireMode.CONSTRUCTOR)

        with self.assertRaises(UnsatisfiedDependencyError) as ctx:
            self.factory.get_bean("assembly")

        self.assertIn("Widget", str(ctx.exception))


class TestExplicitArguments(KotBeansTestCase):
    """Arguments passed to get_bean"""

    def setUp(self):
        super().setUp()
        self.register("sized", Sized, scope=SCOPE_PROTOTYPE)

    def test_explicit_arguments_replace_declared_ones(self):
        """Explicit arguments are passed to the constructor"""
        sized = self.factory.get_bean("sized", args=["given", "3"])

        self.assertEqual((sized.name, sized.size), ("given", 3))

    def test_explicit_arguments_use_defaults(self):
        """Missing trailing explicit arguments fall back to defaults"""
        sized = self.factory.get_bean("sized", args=["given"])

        self.assertEqual(sized.size, 1)

    def test_explicit_arguments_without_match_raise(self):
        """Too few explicit arguments for every constructor fail"""
        with self.assertRaises(UnsatisfiedDependencyError):
            self.factory.get_bean("sized", args=[])


class TestInstanceSupplier(KotBeansTestCase):
    """Instance suppliers"""

    def test_supplier_provides_instance(self):
        """The supplier result is used as the raw instance"""
        gadget = Gadget()
        self.register("gadget", Gadget, instance_supplier=lambda: gadget)

        self.assertIs(self.factory.get_bean("gadget"), gadget)

    def test_supplier_returning_none_gives_null_bean(self):
        """A supplier returning None makes get_bean return None"""
        self.register("nothing", Gadget, instance_supplier=lambda: None)

        self.assertIsNone(self.factory.get_bean("nothing"))
        self.assertTrue(self.factory.registry.contains_singleton("nothing"))

    def test_supplier_exception_is_wrapped(self):
        """Supplier errors become BeanInstantiationError"""
        def fail():
            raise RuntimeError("offline")

        self.register("gadget", Gadget, instance_supplier=fail)

        with self.assertRaises(BeanInstantiationError) as ctx:
            self.factory.get_bean("gadget")

        self.assertIn("Instance supplier threw exception", str(ctx.exception))


class TestFactoryMethods(KotBeansTestCase):
    """Static and instance factory methods"""

    def test_class_factory_method_with_default(self):
        """A classmethod of the bean class creates the bean"""
        self.register("connection", Connection, factory_method_name="create")

        connection = self.factory.get_bean("connection")

        self.assertIsInstance(connection, Connection)
        self.assertEqual(connection.url, "memory://")

    def test_factory_method_returning_none(self):
        """A factory method returning None gives a null bean"""
        self.register("nothing", Connection, factory_method_name="nothing")

        self.assertIsNone(self.factory.get_bean("nothing"))
        self.assertIsNone(self.factory.get_bean("nothing"))

    def test_instance_factory_method(self):
        """A method of another bean creates the bean"""
        self.register("connections", Connections)
        definition = self.register(
            "connection", None, factory_bean_name="connections", factory_method_name="open",
        )
        definition.constructor_args.add_generic("db://main")

        connection = self.factory.get_bean("connection")

        self.assertEqual(connection.url, "db://main")
        self.assertEqual(self.factory.get_bean("connections").opened, 1)
        self.assertIn("connection", self.factory.registry.get_dependent_beans("connections"))

    def test_factory_method_return_type_predicts_bean_type(self):
        """The return annotation of the factory method is the bean type"""
        self.register("connections", Connections)
        self.register("connection", None, factory_bean_name="connections", factory_method_name="open")

        self.assertIs(self.factory.get_type("connection"), Connection)

    def test_prototype_factory_method_with_explicit_arguments(self):
        """Explicit arguments are passed to the factory method"""
        self.register("connections", Connections)
        self.register("connection", None, scope=SCOPE_PROTOTYPE,
                      factory_bean_name="connections", factory_method_name="open")

        first = self.factory.get_bean("connection", args=["a://"])
        second = self.factory.get_bean("connection", args=["b://"])

        self.assertEqual((first.url, second.url), ("a://", "b://"))

    def test_missing_factory_method_raises(self):
        """An unknown factory method name fails with a hint"""
        self.register("connection", Connection, factory_method_name="missing")

        with self.assertRaises(BeanCreationError) as ctx:
            self.factory.get_bean("connection")

        self.assertIn("No matching factory method found", str(ctx.exception))

    def test_factory_method_exception_is_wrapped(self):
        """Factory method errors include the original message"""
        class Failing:
            @staticmethod
            def build() -> Gadget:
                raise RuntimeError("no gadgets today")

        self.register("gadget", Failing, factory_method_name="build")

        with self.assertRaises(BeanInstantiationError) as ctx:
            self.factory.get_bean("gadget")

        self.assertIn("no gadgets today", str(ctx.exception))

    def test_ambiguous_factory_methods_raise(self):
        """Equally matching factory method overloads always fail"""
        self.register("factories", Factories)
        definition = self.register("gadget", None, factory_bean_name="factories",
                                   factory_method_name="create")
        definition.constructor_args.add_generic(None)

        with self.assertRaises(AmbiguousFactoryMethodError):
            self.factory.get_bean("gadget")

    def test_factory_method_combined_with_lookup_override_is_invalid(self):
        """Definitions with both a factory method and lookup overrides fail validation"""
        definition = BeanDefinition(bean_class=Connection, factory_method_name="create",
                                    lookup_overrides=[LookupOverride("create")])

        with self.assertRaises(BeanDefinitionValidationError):
            definition.validate()


if __name__ == '__main__':
    unittest.main()
