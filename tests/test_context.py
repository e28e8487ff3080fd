"""
Context Tests

Tests for KotBeansContext:
- refresh() creating eager singletons
- close() and the context manager protocol
- Failed refresh cleanup
- Parent and child contexts
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from kotbeans import (
    BeanCreationError,
    BeanDefinition,
    BeanDefinitionOverrideError,
    ContainerClosedError,
    DefinitionRegistry,
    FactoryConfig,
    KotBeansContext,
)
from fixtures import Counter, Gadget, GadgetFactoryBean, LifecycleBean, Recorder


class Broken:
    def __init__(self):
        raise RuntimeError("cannot start")


class TestContextLifecycle(unittest.TestCase):
    """refresh() and close()"""

    def setUp(self):
        self.registry = DefinitionRegistry()
        self.recorder = Recorder()

    def register(self, name, bean_class, **fields):
        self.registry.register_definition(name, BeanDefinition(bean_class=bean_class, **fields))

    def test_refresh_creates_eager_singletons(self):
        """Non-lazy singletons exist after refresh()"""
        Counter.created = 0
        self.register("counter", Counter)
        self.register("lazy", Counter, lazy_init=True)
        context = KotBeansContext(self.registry)

        context.refresh()

        self.assertTrue(context.is_refreshed)
        self.assertEqual(Counter.created, 1)
        self.assertTrue(context.factory.registry.contains_singleton("counter"))
        self.assertFalse(context.factory.registry.contains_singleton("lazy"))
        context.close()

    def test_refresh_creates_factory_not_product(self):
        """Factory beans are created eagerly, their products lazily"""
        self.register("fb", GadgetFactoryBean)
        context = KotBeansContext(self.registry)

        context.refresh()

        self.assertEqual(context.get_bean("&fb").calls, 0)
        self.assertIsInstance(context.get_bean("fb"), Gadget)
        context.close()

    def test_close_destroys_singletons(self):
        """close() runs destroy callbacks and is idempotent"""
        self.register("bean", LifecycleBean, property_values={"recorder": self.recorder})
        context = KotBeansContext(self.registry)
        context.refresh()

        context.close()
        context.close()

        self.assertTrue(context.is_closed)
        self.assertEqual(self.recorder.events.count("bean:destroy"), 1)

    def test_closed_context_rejects_lookups(self):
        """Lookups and refresh fail after close()"""
        context = KotBeansContext(self.registry)
        context.close()

        with self.assertRaises(ContainerClosedError):
            context.get_bean("anything")
        with self.assertRaises(ContainerClosedError):
            context.refresh()

    def test_context_manager(self):
        """with-blocks refresh on entry and close on exit"""
        self.register("bean", LifecycleBean, property_values={"recorder": self.recorder})

        with KotBeansContext(self.registry) as context:
            self.assertTrue(context.is_refreshed)
            self.assertIn("bean", context)
            bean = context["bean"]

        self.assertEqual(bean.bean_name, "bean")
        self.assertTrue(context.is_closed)
        self.assertIn("bean:destroy", self.recorder.events)

    def test_failed_refresh_destroys_created_singletons(self):
        """Singletons created before a failure are destroyed again"""
        self.register("bean", LifecycleBean, property_values={"recorder": self.recorder})
        self.register("broken", Broken)
        context = KotBeansContext(self.registry)

        with self.assertLogs("kotbeans.core", level="WARNING"):
            with self.assertRaises(BeanCreationError):
                context.refresh()

        self.assertFalse(context.is_refreshed)
        self.assertIn("bean:destroy", self.recorder.events)
        self.assertEqual(context.factory.registry.singleton_names(), [])

    def test_repr(self):
        context = KotBeansContext(self.registry)

        self.assertEqual(repr(context), "KotBeansContext(new, beans=0)")
        context.close()
        self.assertEqual(repr(context), "KotBeansContext(closed, beans=0)")


class TestContextConfiguration(unittest.TestCase):
    """Contexts built without a registry"""

    def test_default_registry_follows_overriding_switch(self):
        """The implicit registry honors allow_definition_overriding"""
        context = KotBeansContext(config=FactoryConfig(allow_definition_overriding=False))
        context.registry.register_definition("gadget", BeanDefinition(bean_class=Gadget))

        with self.assertRaises(BeanDefinitionOverrideError):
            context.registry.register_definition("gadget", BeanDefinition(bean_class=Gadget))

    def test_default_registry_allows_overriding(self):
        """By default a later definition replaces the earlier one"""
        context = KotBeansContext()
        context.registry.register_definition("gadget", BeanDefinition(bean_class=Gadget))
        context.registry.register_definition("gadget", BeanDefinition(bean_class=Counter))

        self.assertIsInstance(context.get_bean("gadget"), Counter)
        context.close()


class TestContextHierarchy(unittest.TestCase):
    """Child contexts"""

    def test_child_sees_parent_beans(self):
        """A child context resolves missing names in its parent"""
        parent_registry = DefinitionRegistry()
        parent_registry.register_definition("gadget", BeanDefinition(bean_class=Gadget))

        with KotBeansContext(parent_registry) as parent:
            with KotBeansContext(DefinitionRegistry(), parent=parent) as child:
                self.assertIs(child.get_bean("gadget"), parent.get_bean("gadget"))
                self.assertIs(child.parent, parent)
                self.assertTrue(child.contains_bean("gadget"))


if __name__ == '__main__':
    unittest.main()
