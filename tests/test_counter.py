"""
Tests for CounterStore.
"""

from algorithms.swivel.counter import CounterStore


class TestCounterStore:
    def test_starts_at_zero(self):
        assert CounterStore().value == 0.0

    def test_negative_initial_value_is_clamped(self):
        assert CounterStore(-3.0).value == 0.0

    def test_increment_returns_new_value(self):
        counter = CounterStore()
        assert counter.increment() == 1.0
        assert counter.increment(0.5) == 1.5

    def test_decrement_floor_at_zero(self):
        """decrement(0.5) at 0 stays at 0."""
        counter = CounterStore()
        assert counter.decrement(0.5) == 0.0
        assert counter.value == 0.0

    def test_decrement_partially_clamped(self):
        counter = CounterStore(0.25)
        assert counter.decrement(0.5) == 0.0

    def test_reset_from_any_value(self):
        counter = CounterStore(12.5)
        assert counter.reset() == 0.0
        assert counter.value == 0.0

    def test_negative_increment_is_clamped(self):
        counter = CounterStore(1.0)
        assert counter.increment(-5.0) == 0.0
