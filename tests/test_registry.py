"""
Singleton Registry Tests

Tests for the shared-instance registry:
- Slot transitions (Empty -> EarlyFactory -> EarlyExposed -> Finished)
- Early references only for callers that ask for them
- Single-flight creation and rollback on failure
- Dependency edges and destruction order
"""

import unittest

from kotbeans import BeanCreationError, BeanCreationNotAllowedError, CurrentlyInCreationError, IllegalStateError
from kotbeans.creation_context import CreationContext
from kotbeans.registry import EMPTY, EarlyExposed, EarlyFactory, Finished, SingletonRegistry, transition


class Disposable:
    """Records its own destruction into a shared list"""

    def __init__(self, name, log):
        self.name = name
        self.log = log

    def destroy(self):
        self.log.append(self.name)


class TestSlotTransitions(unittest.TestCase):
    """Slot states only move forward"""

    def test_forward_transitions_are_allowed(self):
        """Empty -> EarlyFactory -> EarlyExposed -> Finished is accepted"""
        slot = transition("a", EMPTY, EarlyFactory(lambda: 1))
        slot = transition("a", slot, EarlyExposed(1))
        slot = transition("a", slot, Finished(1))

        self.assertIsInstance(slot, Finished)

    def test_backward_transition_raises(self):
        """Finished cannot move back to EarlyFactory"""
        with self.assertRaises(IllegalStateError) as ctx:
            transition("a", Finished(1), EarlyFactory(lambda: 1))

        self.assertIn("'a'", str(ctx.exception))

    def test_exposed_cannot_return_to_factory(self):
        """EarlyExposed cannot move back to EarlyFactory"""
        with self.assertRaises(IllegalStateError):
            transition("a", EarlyExposed(1), EarlyFactory(lambda: 1))


class TestEarlyReferences(unittest.TestCase):
    """Early references are handed out only on request"""

    def setUp(self):
        self.registry = SingletonRegistry()

    def test_early_factory_invoked_once(self):
        """The early supplier runs once; later reads return the same object"""
        calls = []
        self.registry.add_singleton_factory("a", lambda: calls.append(1) or object())

        first = self.registry.get_singleton("a", allow_early_reference=True)
        second = self.registry.get_singleton("a", allow_early_reference=True)

        self.assertIs(first, second)
        self.assertEqual(len(calls), 1)
        self.assertIsInstance(self.registry.slot("a"), EarlyExposed)
        self.assertIs(self.registry.get_exposed_early_reference("a"), first)

    def test_early_reference_not_returned_without_permission(self):
        """Plain reads never see a singleton in creation"""
        self.registry.add_singleton_factory("a", object)

        self.assertIsNone(self.registry.get_singleton("a"))
        self.assertIsInstance(self.registry.slot("a"), EarlyFactory)

    def test_finished_value_wins(self):
        """A finished singleton is returned regardless of the flag"""
        value = object()
        self.registry.add_singleton("a", value)

        self.assertIs(self.registry.get_singleton("a"), value)
        self.assertIs(self.registry.get_singleton("a", allow_early_reference=True), value)
        self.assertTrue(self.registry.contains_singleton("a"))


class TestCreation(unittest.TestCase):
    """get_or_create_singleton"""

    def setUp(self):
        self.registry = SingletonRegistry()

    def test_creator_runs_once(self):
        """Second request returns the stored instance"""
        calls = []

        def create():
            calls.append(1)
            return object()

        first = self.registry.get_or_create_singleton("a", create, CreationContext())
        second = self.registry.get_or_create_singleton("a", create, CreationContext())

        self.assertIs(first, second)
        self.assertEqual(len(calls), 1)
        self.assertEqual(self.registry.singleton_names(), ["a"])

    def test_failure_rolls_back_slot(self):
        """A failing creator leaves no slot behind and can be retried"""
        def fail():
            self.registry.add_singleton_factory("a", object)
            raise BeanCreationError("a", "boom")

        with self.assertRaises(BeanCreationError):
            self.registry.get_or_create_singleton("a", fail, CreationContext())

        self.assertIs(self.registry.slot("a"), EMPTY)
        value = self.registry.get_or_create_singleton("a", object, CreationContext())
        self.assertIs(self.registry.get_singleton("a"), value)

    def test_reentrant_creation_raises_currently_in_creation(self):
        """Requesting the same singleton from its own creator is a cycle"""
        ctx = CreationContext()

        def create():
            return self.registry.get_or_create_singleton("a", object, ctx)

        with self.assertRaises(CurrentlyInCreationError) as error:
            self.registry.get_or_create_singleton("a", create, ctx)

        self.assertIn("a -> a", str(error.exception))

    def test_suppressed_errors_are_attached(self):
        """Errors suppressed during creation become related causes"""
        ctx = CreationContext()
        hint = ValueError("earlier problem")

        def create():
            ctx.on_suppressed_error(hint)
            raise BeanCreationError("a", "boom")

        with self.assertRaises(BeanCreationError) as error:
            self.registry.get_or_create_singleton("a", create, ctx)

        self.assertEqual(error.exception.related_causes, [hint])

    def test_register_singleton_twice_raises(self):
        """Manual registration of a taken name raises IllegalStateError"""
        self.registry.register_singleton("a", 1)

        with self.assertRaises(IllegalStateError):
            self.registry.register_singleton("a", 2)


class TestDependencyEdges(unittest.TestCase):
    """Dependent bean bookkeeping"""

    def setUp(self):
        self.registry = SingletonRegistry()

    def test_transitive_dependency(self):
        """is_dependent follows chains of dependents"""
        self.registry.register_dependent_bean("a", "b")
        self.registry.register_dependent_bean("b", "c")

        self.assertTrue(self.registry.is_dependent("a", "c"))
        self.assertFalse(self.registry.is_dependent("c", "a"))
        self.assertEqual(self.registry.get_dependent_beans("a"), ["b"])
        self.assertEqual(self.registry.get_dependencies_for_bean("c"), ["b"])

    def test_cyclic_edges_terminate(self):
        """is_dependent terminates on cyclic edges"""
        self.registry.register_dependent_bean("a", "b")
        self.registry.register_dependent_bean("b", "a")

        self.assertTrue(self.registry.is_dependent("a", "b"))
        self.assertFalse(self.registry.is_dependent("a", "x"))


class TestDestruction(unittest.TestCase):
    """Destruction order and in-destruction state"""

    def setUp(self):
        self.registry = SingletonRegistry()
        self.log = []

    def add(self, name):
        self.registry.add_singleton(name, name)
        self.registry.register_disposable_bean(name, Disposable(name, self.log))

    def test_reverse_registration_order(self):
        """Unrelated singletons are destroyed newest first"""
        for name in ("a", "b", "c"):
            self.add(name)

        self.registry.destroy_singletons()

        self.assertEqual(self.log, ["c", "b", "a"])
        self.assertEqual(self.registry.singleton_names(), [])

    def test_dependents_destroyed_first(self):
        """A bean is destroyed after every bean depending on it"""
        self.add("consumer")
        self.add("service")
        self.registry.register_dependent_bean("service", "consumer")

        self.registry.destroy_singletons()

        self.assertEqual(self.log, ["consumer", "service"])

    def test_contained_beans_destroyed_after_container(self):
        """Inner beans are destroyed after the bean containing them"""
        self.add("inner")
        self.add("outer")
        self.registry.register_contained_bean("inner", "outer")

        self.registry.destroy_singleton("inner")

        self.assertEqual(self.log, ["outer", "inner"])

    def test_failing_destroy_does_not_stop_others(self):
        """A destroy error is logged and the remaining beans are destroyed"""
        class Failing:
            def destroy(self):
                raise RuntimeError("cannot close")

        self.add("a")
        self.registry.add_singleton("broken", "broken")
        self.registry.register_disposable_bean("broken", Failing())

        with self.assertLogs("kotbeans.registry", level="WARNING"):
            self.registry.destroy_singletons()

        self.assertEqual(self.log, ["a"])

    def test_creation_not_allowed_during_destruction(self):
        """Requesting a singleton from a destroy callback raises"""
        errors = []

        class Greedy:
            def destroy(inner_self):
                try:
                    self.registry.get_or_create_singleton("late", object, CreationContext())
                except BeanCreationNotAllowedError as ex:
                    errors.append(ex)

        self.registry.add_singleton("greedy", "greedy")
        self.registry.register_disposable_bean("greedy", Greedy())

        self.registry.destroy_singletons()

        self.assertEqual(len(errors), 1)
        self.assertFalse(self.registry.in_destruction)


if __name__ == '__main__':
    unittest.main()
