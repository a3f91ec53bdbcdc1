from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.config import Config
from observation.base import HeadingSource
from observation.push_source import PushSource, PushSourceConfig
from observation.replay_source import ReplaySource, ReplaySourceConfig
from ops.keep_awake import KeepAwake
from runtime.session import DetectionSession
from storage.database import Database


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    raw_config: dict
    db: Optional[Database]
    source: HeadingSource
    session: DetectionSession

    def close(self) -> None:
        self.session.close()
        if self.db is not None:
            self.db.close()


def create_source(config: Config, replay_path: Optional[str] = None) -> HeadingSource:
    """Build the heading source selected by ``sensor.source`` (or a replay file)."""
    if replay_path or config.sensor.source == "replay":
        path = replay_path or config.sensor.replay_path
        return ReplaySource.from_file(
            ReplaySourceConfig(source_id="replay", path=path, speed=config.sensor.replay_speed)
        )
    return PushSource(PushSourceConfig.from_sensor_config(config.sensor))


def build_runtime(
    raw_config: Dict[str, Any],
    replay_path: Optional[str] = None,
    use_database: bool = True,
) -> RuntimeContext:
    """
    Wire config -> database -> source -> session.

    Args:
        raw_config: Merged config dict (from load_config).
        replay_path: Replay CSV overriding ``sensor.source``.
        use_database: Persist settings and count history to SQLite.
    """
    config = Config.from_dict(raw_config)

    db = None
    if use_database:
        db = Database(config.storage.local_database_path)
        db.initialize()
        db.cleanup_old_data(retention_days=config.storage.retention_days)

    source = create_source(config, replay_path=replay_path)
    keep_awake = KeepAwake(enabled=config.sensor.keep_awake)
    session = DetectionSession.restore(config, source, db=db, keep_awake=keep_awake)

    logging.info(f"Runtime ready (source={source.source_id}, database={'on' if db else 'off'})")
    return RuntimeContext(
        config=config,
        raw_config=raw_config,
        db=db,
        source=source,
        session=session,
    )
