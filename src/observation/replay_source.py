"""
Replay heading source.

Plays back recorded orientation samples from a CSV file with the header
``timestamp_ms,compass_heading,alpha`` (either heading column may be
omitted or left blank). Playback runs as an asyncio task while at least
one subscriber is attached and resumes where it stopped.
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from models.orientation import OrientationSample
from .base import HeadingSource, SourceConfig


@dataclass
class ReplaySourceConfig(SourceConfig):
    """
    Configuration for replay sources.

    Attributes:
        path: CSV file to replay.
        speed: Playback speed factor; 0 = as fast as possible.
    """
    source_id: str = "replay"
    path: str = ""
    speed: float = 0.0


def _none_if_nan(value: float) -> Optional[float]:
    value = float(value)
    return None if math.isnan(value) else value


def load_samples(path: str) -> List[OrientationSample]:
    """
    Load orientation samples from a CSV file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the timestamp_ms column is missing.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Replay file not found: {path}")

    data = np.genfromtxt(path, delimiter=",", names=True, dtype=float, encoding="utf-8")
    data = np.atleast_1d(data)
    names = data.dtype.names or ()
    if "timestamp_ms" not in names:
        raise ValueError(f"Replay file {path} has no timestamp_ms column")

    n = len(data)
    nan_column = np.full(n, np.nan)
    timestamps = data["timestamp_ms"]
    compass = data["compass_heading"] if "compass_heading" in names else nan_column
    alpha = data["alpha"] if "alpha" in names else nan_column

    samples = samples_from_arrays(timestamps, compass, alpha)
    logging.info(f"Loaded {len(samples)} samples from {path}")
    return samples


def samples_from_arrays(
    timestamps: Sequence[float],
    compass: Optional[Sequence[float]] = None,
    alpha: Optional[Sequence[float]] = None,
) -> List[OrientationSample]:
    """Build samples from parallel arrays; NaN marks a missing value."""
    ts = np.asarray(timestamps, dtype=float)
    n = len(ts)
    compass_arr = np.asarray(compass, dtype=float) if compass is not None else np.full(n, np.nan)
    alpha_arr = np.asarray(alpha, dtype=float) if alpha is not None else np.full(n, np.nan)
    if len(compass_arr) != n or len(alpha_arr) != n:
        raise ValueError("timestamps, compass and alpha must have the same length")

    return [
        OrientationSample(
            compass_heading=_none_if_nan(compass_arr[i]),
            alpha=_none_if_nan(alpha_arr[i]),
            timestamp_ms=float(ts[i]),
        )
        for i in range(n)
    ]


class ReplaySource(HeadingSource):
    """
    Replays a fixed list of samples to subscribers.

    Permission is always granted. wait_finished() resolves once every
    sample has been delivered.
    """

    def __init__(self, samples: List[OrientationSample], config: Optional[ReplaySourceConfig] = None):
        super().__init__(config or ReplaySourceConfig())
        self._replay_config: ReplaySourceConfig = self._config
        self._samples = list(samples)
        self._index = 0
        self._task: Optional[asyncio.Task] = None
        self._finished: Optional[asyncio.Event] = None

    @classmethod
    def from_file(cls, config: ReplaySourceConfig) -> "ReplaySource":
        return cls(load_samples(config.path), config)

    @property
    def position(self) -> int:
        """Index of the next sample to deliver."""
        return self._index

    @property
    def finished(self) -> bool:
        return self._index >= len(self._samples)

    async def request_permission(self) -> bool:
        return True

    async def wait_finished(self) -> None:
        if self.finished:
            return
        await self._finished_event().wait()

    def close(self) -> None:
        super().close()
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _finished_event(self) -> asyncio.Event:
        if self._finished is None:
            self._finished = asyncio.Event()
            if self.finished:
                self._finished.set()
        return self._finished

    def _on_first_subscriber(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._play())

    def _on_last_unsubscribe(self) -> None:
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = None

    async def _play(self) -> None:
        speed = self._replay_config.speed
        while self._index < len(self._samples) and self.subscriber_count > 0:
            sample = self._samples[self._index]
            if self._index > 0 and speed > 0:
                prev = self._samples[self._index - 1]
                delay_ms = (sample.timestamp_ms or 0.0) - (prev.timestamp_ms or 0.0)
                await asyncio.sleep(max(0.0, delay_ms) / 1000.0 / speed)
            else:
                await asyncio.sleep(0)
            if self.subscriber_count == 0:
                break
            self._index += 1
            self._emit(sample)

        if self.finished:
            logging.info(f"Replay of {len(self._samples)} samples finished")
            self._finished_event().set()
