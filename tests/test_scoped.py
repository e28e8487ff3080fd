"""
Scope Tests

Tests for custom scopes:
- Registering scopes and rejecting the built-in names
- SimpleScope caching, closing and destruction callbacks
- ThreadScope isolation per thread
- Destroying single scoped beans
"""

import os
import sys
import threading
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from kotbeans import (
    IllegalStateError,
    Scope,
    ScopeNotActiveError,
    SimpleScope,
    ThreadScope,
    ref,
)
from conftest import KotBeansTestCase
from fixtures import Gadget, LifecycleBean, Recorder


class InactiveScope(Scope):
    """Scope that is never active"""

    def get(self, name, object_factory):
        raise IllegalStateError("No request bound to the current thread")

    def remove(self, name):
        return None

    def register_destruction_callback(self, name, callback):
        pass


class TestScopeRegistration(KotBeansTestCase):
    """register_scope and get_registered_scope"""

    def test_builtin_names_are_reserved(self):
        """singleton and prototype cannot be registered"""
        for name in ("singleton", "prototype"):
            with self.assertRaises(ValueError):
                self.factory.register_scope(name, SimpleScope())

    def test_registered_scope_is_returned(self):
        """A registered scope can be looked up by name"""
        scope = SimpleScope()
        self.factory.register_scope("request", scope)

        self.assertIs(self.factory.get_registered_scope("request"), scope)
        self.assertEqual(self.factory.get_registered_scope_names(), ["request"])

    def test_unknown_scope_raises(self):
        """A definition with an unregistered scope cannot be created"""
        self.register("gadget", Gadget, scope="request")

        with self.assertRaises(IllegalStateError) as ctx:
            self.factory.get_bean("gadget")

        self.assertIn("No Scope registered for scope name 'request'", str(ctx.exception))

    def test_inactive_scope_raises_scope_not_active(self):
        """A scope failing with IllegalStateError is reported as not active"""
        self.factory.register_scope("request", InactiveScope())
        self.register("gadget", Gadget, scope="request")

        with self.assertRaises(ScopeNotActiveError) as ctx:
            self.factory.get_bean("gadget")

        self.assertIn("not active", str(ctx.exception))


class TestSimpleScope(KotBeansTestCase):
    """Beans in a SimpleScope"""

    def setUp(self):
        super().setUp()
        self.recorder = Recorder()
        self.factory.register_singleton("recorder", self.recorder)
        self.register("bean", LifecycleBean, scope="request",
                      property_values={"recorder": ref("recorder")})

    def test_same_instance_within_scope(self):
        """One instance per scope instance"""
        with SimpleScope("r1") as scope:
            self.factory.register_scope("request", scope)
            first = self.factory.get_bean("bean")
            second = self.factory.get_bean("bean")

        self.assertIs(first, second)

    def test_new_scope_gets_new_instance(self):
        """Another scope instance creates another bean"""
        with SimpleScope("r1") as scope:
            self.factory.register_scope("request", scope)
            first = self.factory.get_bean("bean")
        with SimpleScope("r2") as scope:
            self.factory.register_scope("request", scope)
            second = self.factory.get_bean("bean")

        self.assertIsNot(first, second)

    def test_closing_scope_destroys_beans(self):
        """Closing the scope runs the destroy callbacks"""
        with SimpleScope("r1") as scope:
            self.factory.register_scope("request", scope)
            self.factory.get_bean("bean")
            self.assertNotIn("bean:destroy", self.recorder.events)

        self.assertIn("bean:destroy", self.recorder.events)

    def test_closed_scope_raises(self):
        """A closed scope cannot create beans"""
        scope = SimpleScope("r1")
        self.factory.register_scope("request", scope)
        scope.close()

        with self.assertRaises(ScopeNotActiveError):
            self.factory.get_bean("bean")

    def test_scoped_bean_is_neither_singleton_nor_prototype(self):
        """Scoped beans report neither built-in scope"""
        self.factory.register_scope("request", SimpleScope())

        self.assertFalse(self.factory.is_singleton("bean"))
        self.assertFalse(self.factory.is_prototype("bean"))

    def test_destroy_scoped_bean(self):
        """destroy_scoped_bean removes and destroys the current instance"""
        scope = SimpleScope("r1")
        self.factory.register_scope("request", scope)
        first = self.factory.get_bean("bean")

        self.factory.destroy_scoped_bean("bean")

        self.assertEqual(self.recorder.events.count("bean:destroy"), 1)
        self.assertIsNot(self.factory.get_bean("bean"), first)
        scope.close()
        self.assertEqual(self.recorder.events.count("bean:destroy"), 2)

    def test_destroy_scoped_bean_rejects_singletons(self):
        """Singletons cannot be destroyed through their scope"""
        self.register("gadget", Gadget)

        with self.assertRaises(IllegalStateError):
            self.factory.destroy_scoped_bean("gadget")


class TestThreadScope(KotBeansTestCase):
    """Beans in a ThreadScope"""

    def setUp(self):
        super().setUp()
        self.scope = ThreadScope()
        self.factory.register_scope("thread", self.scope)
        self.register("gadget", Gadget, scope="thread")

    def test_each_thread_has_its_own_instance(self):
        """Instances are not shared across threads"""
        main = self.factory.get_bean("gadget")
        other = []

        thread = threading.Thread(target=lambda: other.append(self.factory.get_bean("gadget")))
        thread.start()
        thread.join()

        self.assertIs(self.factory.get_bean("gadget"), main)
        self.assertIsNot(other[0], main)

    def test_clear_forgets_instances_of_current_thread(self):
        """clear() makes the next lookup create a new instance"""
        first = self.factory.get_bean("gadget")

        self.scope.clear()

        self.assertIsNot(self.factory.get_bean("gadget"), first)

    def test_clear_runs_destruction_callbacks(self):
        """Destruction callbacks registered in the thread run on clear()"""
        recorder = Recorder()
        self.factory.register_singleton("recorder", recorder)
        self.register("bean", LifecycleBean, scope="thread",
                      property_values={"recorder": ref("recorder")})
        self.factory.get_bean("bean")

        self.scope.clear()

        self.assertEqual(recorder.events[-1], "bean:destroy")


if __name__ == '__main__':
    unittest.main()
