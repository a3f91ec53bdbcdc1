"""
Push-based heading source.

Samples are pushed in from outside (typically the web API receiving
orientation events from a phone client) and fanned out to subscribers.
Permission is either granted up front or decided later by the client.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from models.config import SensorConfig
from models.orientation import OrientationSample
from .base import HeadingSource, SourceConfig


@dataclass
class PushSourceConfig(SourceConfig):
    """
    Configuration for push sources.

    Attributes:
        auto_grant: Treat sensor permission as granted without asking the client.
        permission_timeout_s: How long request_permission() waits for a client decision.
    """
    source_id: str = "push"
    auto_grant: bool = True
    permission_timeout_s: float = 30.0

    @classmethod
    def from_sensor_config(cls, sensor: SensorConfig, source_id: str = "push") -> "PushSourceConfig":
        """Adapter: Create from the typed ``sensor`` config section."""
        return cls(
            source_id=source_id,
            auto_grant=sensor.auto_grant,
            permission_timeout_s=sensor.permission_timeout_s,
        )


class PushSource(HeadingSource):
    """
    Heading source fed by push(); delivers samples synchronously.

    When auto_grant is off, request_permission() waits until the client
    reports its decision through set_permission().
    """

    def __init__(self, config: Optional[PushSourceConfig] = None):
        super().__init__(config or PushSourceConfig())
        self._push_config: PushSourceConfig = self._config
        self._granted: Optional[bool] = True if self._push_config.auto_grant else None
        self._decided: Optional[asyncio.Event] = None
        self._samples_received = 0

    @property
    def permission(self) -> Optional[bool]:
        """True/False once decided, None while the client has not answered."""
        return self._granted

    @property
    def samples_received(self) -> int:
        return self._samples_received

    async def request_permission(self) -> bool:
        if self._granted is not None:
            return self._granted

        if self._decided is None:
            self._decided = asyncio.Event()
        try:
            await asyncio.wait_for(self._decided.wait(), timeout=self._push_config.permission_timeout_s)
        except asyncio.TimeoutError:
            logging.warning("No sensor permission decision from client, treating as denied")
            return False
        return bool(self._granted)

    def set_permission(self, granted: bool) -> None:
        """Record the client's permission decision."""
        self._granted = bool(granted)
        logging.info(f"Sensor permission {'granted' if granted else 'denied'} by client")
        if self._decided is not None:
            self._decided.set()

    def reset_permission(self) -> None:
        """Forget a previous decision so the client is asked again."""
        if self._push_config.auto_grant:
            return
        self._granted = None
        self._decided = None

    def push(self, sample: OrientationSample) -> int:
        """
        Deliver a sample to all subscribers.

        Returns:
            Number of subscribers the sample was delivered to.
        """
        if self._granted is False:
            logging.debug("Dropping sample: sensor permission denied")
            return 0
        self._samples_received += 1
        delivered = self.subscriber_count
        self._emit(sample)
        return delivered
