"""
Counter store with a non-negative floor.
"""

from __future__ import annotations


class CounterStore:
    """Running count; every mutation clamps the value to >= 0."""

    def __init__(self, value: float = 0.0):
        self._value = max(0.0, float(value))

    @property
    def value(self) -> float:
        return self._value

    def increment(self, step: float = 1.0) -> float:
        """Add step; returns the new value."""
        self._value = max(0.0, self._value + step)
        return self._value

    def decrement(self, step: float = 0.5) -> float:
        """Subtract step; returns the new value."""
        self._value = max(0.0, self._value - step)
        return self._value

    def reset(self) -> float:
        self._value = 0.0
        return self._value
