"""
Test Configuration and Utilities

Common base classes and helper functions for kotbeans tests
"""

import unittest
from typing import Any, Optional

from kotbeans import BeanDefinition, DefinitionRegistry, FactoryConfig, KotBeansFactory


class KotBeansTestCase(unittest.TestCase):
    """
    Base test case class for kotbeans tests.

    Creates a fresh definition registry and factory before each test and
    destroys the singletons after it.
    """

    config: Optional[FactoryConfig] = None

    def setUp(self):
        """Create an empty registry and a factory reading from it"""
        self.registry = DefinitionRegistry()
        self.factory = KotBeansFactory(self.registry, config=self.config)

    def tearDown(self):
        """Destroy singletons created by the test"""
        self.factory.destroy_singletons()

    def register(self, name: str, bean_class: Any = None, **fields) -> BeanDefinition:
        """
        Register a definition built from keyword fields and return it.

        Example:
            >>> self.register("widget", Widget, property_values={"size": 3})
        """
        definition = BeanDefinition(bean_class=bean_class, **fields)
        self.registry.register_definition(name, definition)
        return definition


def caused_by(error: BaseException, kind: type) -> bool:
    """
    Whether ``error`` or any exception in its ``__cause__`` chain is a ``kind``.

    Example:
        >>> self.assertTrue(caused_by(ctx.exception, CurrentlyInCreationError))
    """
    current: Optional[BaseException] = error
    while current is not None:
        if isinstance(current, kind):
            return True
        current = current.__cause__
    return False
