"""
HeadingSource interface for pluggable orientation sensors.

This defines the contract that all heading sources must implement,
enabling the detection session to work with any sample producer:
- Phone clients pushing orientation events over HTTP
- Recorded sample files replayed offline
- Test doubles
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from models.orientation import OrientationSample

SampleCallback = Callable[[OrientationSample], None]


class PermissionDeniedError(RuntimeError):
    """Sensor access was not granted."""


class CalibrationTimeoutError(TimeoutError):
    """No fresh heading sample arrived within the calibration timeout."""


@dataclass
class SourceConfig:
    """
    Base configuration for heading sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "phone", "replay").
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    metadata: Dict[str, Any] = field(default_factory=dict)


class Subscription:
    """
    Handle returned by HeadingSource.subscribe().

    unsubscribe() is idempotent and safe to call from inside the callback.
    """

    def __init__(self, source: "HeadingSource", callback: SampleCallback):
        self._source = source
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def callback(self) -> SampleCallback:
        return self._callback

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._source._remove(self)


class HeadingSource(ABC):
    """
    Abstract base class for heading sources.

    Lifecycle:
        1. Create instance with config
        2. Await request_permission(); subscribing requires a grant
        3. subscribe(callback) to receive samples; keep the Subscription
        4. Subscription.unsubscribe() to stop receiving samples
        5. close() to release resources

    Samples are delivered serially on the event loop that produces them.
    """

    def __init__(self, config: Optional[SourceConfig] = None):
        self._config = config or SourceConfig()
        self._subscriptions: List[Subscription] = []

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @abstractmethod
    async def request_permission(self) -> bool:
        """
        Ask for sensor access.

        Returns:
            True if granted, False if denied. Never raises for a denial.
        """
        pass

    def reset_permission(self) -> None:
        """Forget a previous denial so the next request asks again."""

    def subscribe(self, callback: SampleCallback) -> Subscription:
        """Register a callback for every future sample."""
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        if len(self._subscriptions) == 1:
            self._on_first_subscriber()
        return subscription

    def close(self) -> None:
        """Drop all subscriptions. Safe to call multiple times."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()

    def _emit(self, sample: OrientationSample) -> None:
        """Deliver a sample to every active subscriber."""
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(sample)
            except Exception as e:
                logging.error(f"Sample callback failed on source {self.source_id}: {e}")

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        if not self._subscriptions:
            self._on_last_unsubscribe()

    def _on_first_subscriber(self) -> None:
        """Hook for sources that only produce while someone listens."""

    def _on_last_unsubscribe(self) -> None:
        """Hook called when the last subscription goes away."""
