"""
Swivel Counter entry point.

Serves the REST API for a phone client pushing compass samples, or replays
a recorded sample file offline and prints the resulting count.

Usage:
    python src/main.py --config config/config.yaml --serve
    python src/main.py --replay samples.csv --origin 10 --destination 120

Arguments:
    --config: Path to configuration file
    --serve: Run the web API (default when --replay is not given)
    --replay: Replay a CSV of orientation samples instead of serving
    --speed: Replay speed factor (0 = as fast as possible)
    --origin/--destination: Calibrate by value before replaying
"""

import os
import sys
import argparse
import asyncio
import logging
from typing import Dict, Any, Tuple, Optional

import yaml
import uvicorn

from models.config import DEBOUNCE_MS_RANGE, TOLERANCE_DEG_RANGE
from ops.logging import setup_logging
from runtime.context import RuntimeContext, build_runtime
from web.app import create_app
from web.services.config_service import ConfigService
from web.state import state as web_state


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `default.yaml` next to config_path (checked in)
    - `config.yaml` next to config_path (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        config_dir = os.path.dirname(config_path)
        base_path = os.path.join(config_dir, "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(config_dir, "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not one of the layered files
        layered = {os.path.abspath(base_path), os.path.abspath(local_overrides_path)}
        if os.path.exists(config_path) and os.path.abspath(config_path) not in layered:
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['detection', 'storage', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Validate detection settings
    detection = config.get('detection') or {}
    if 'tolerance_deg' in detection:
        tol = detection['tolerance_deg']
        lo, hi = TOLERANCE_DEG_RANGE
        if not _is_number(tol) or not (lo <= tol <= hi):
            return False, f"detection.tolerance_deg must be between {lo:g} and {hi:g}"
    if 'debounce_ms' in detection:
        debounce = detection['debounce_ms']
        lo, hi = DEBOUNCE_MS_RANGE
        if not isinstance(debounce, int) or isinstance(debounce, bool) or not (lo <= debounce <= hi):
            return False, f"detection.debounce_ms must be an integer between {lo} and {hi}"
    if 'alignment_window_ms' in detection:
        window = detection['alignment_window_ms']
        if not isinstance(window, int) or isinstance(window, bool) or window <= 0:
            return False, "detection.alignment_window_ms must be a positive integer"
    if 'waypoint_count' in detection:
        wpc = detection['waypoint_count']
        if not isinstance(wpc, int) or isinstance(wpc, bool) or wpc < 0:
            return False, "detection.waypoint_count must be a non-negative integer"

    # Optional counter steps
    counter = config.get('counter') or {}
    for key in ('auto_step', 'manual_step'):
        if key in counter and (not _is_number(counter[key]) or counter[key] <= 0):
            return False, f"counter.{key} must be a positive number"

    # Optional sensor settings
    sensor = config.get('sensor') or {}
    source = sensor.get('source', 'push')
    if source not in ('push', 'replay'):
        return False, "sensor.source must be one of: push, replay"
    if 'calibration_timeout_ms' in sensor:
        timeout = sensor['calibration_timeout_ms']
        if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout <= 0:
            return False, "sensor.calibration_timeout_ms must be a positive integer"
    if 'replay_speed' in sensor:
        if not _is_number(sensor['replay_speed']) or sensor['replay_speed'] < 0:
            return False, "sensor.replay_speed must be a non-negative number"

    # Validate storage settings
    storage = config.get('storage') or {}
    if 'local_database_path' not in storage:
        return False, "Missing storage.local_database_path"
    if not isinstance(storage['local_database_path'], str):
        return False, "storage.local_database_path must be a string"

    if 'retention_days' in storage:
        if not isinstance(storage['retention_days'], int) or storage['retention_days'] <= 0:
            return False, "storage.retention_days must be a positive integer"

    # Validate log settings
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


async def run_replay(ctx: RuntimeContext, origin: Optional[float], destination: Optional[float]) -> float:
    """
    Calibrate (by value when given), replay every sample and return the final count.

    Raises:
        ValueError: If the session is not calibrated after applying the values.
    """
    session = ctx.session
    if origin is not None:
        await session.set_origin_heading(origin)
    if destination is not None:
        await session.set_destination_heading(destination)
    if not session.engine.is_calibrated:
        raise ValueError("Replay needs an origin and a destination (use --origin/--destination)")

    await session.start()
    await ctx.source.wait_finished()
    session.stop()
    return session.engine.count


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Swivel Counter')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--serve', action='store_true',
                      help='Run the web API (default)')
    mode.add_argument('--replay', type=str, metavar='FILE',
                      help='Replay a CSV of orientation samples and print the final count')
    parser.add_argument('--speed', type=float, default=None,
                        help='Replay speed factor (0 = as fast as possible)')
    parser.add_argument('--origin', type=float, default=None,
                        help='Origin heading in degrees (replay)')
    parser.add_argument('--destination', type=float, default=None,
                        help='Destination heading in degrees (replay)')
    parser.add_argument('--host', type=str, default=None, help='Web API bind host')
    parser.add_argument('--port', type=int, default=None, help='Web API port')
    args = parser.parse_args()

    # Load configuration
    config = load_config(args.config)
    if args.speed is not None:
        config.setdefault('sensor', {})['replay_speed'] = args.speed

    # Validate configuration
    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    # Setup logging
    setup_logging(config['log_path'], config['log_level'])

    # Ensure data directory exists
    data_dir = os.path.dirname(config['storage']['local_database_path'])
    if data_dir and not os.path.exists(data_dir):
        os.makedirs(data_dir)

    logging.info("Starting Swivel Counter")

    ctx = None
    try:
        if args.replay:
            ctx = build_runtime(config, replay_path=args.replay, use_database=False)
            count = asyncio.run(run_replay(ctx, args.origin, args.destination))
            logging.info(f"Replay finished: count={count:g}")
            print(f"{count:g}")
            return

        ctx = build_runtime(config)
        web_cfg = config.get('web') or {}
        host = args.host or web_cfg.get('host', '0.0.0.0')
        port = args.port or int(web_cfg.get('port', 5000))

        ConfigService.DEFAULT_PATH = os.path.join(os.path.dirname(args.config), 'default.yaml')
        ConfigService.OVERRIDES_PATH = os.path.join(os.path.dirname(args.config), 'config.yaml')
        web_state.set_runtime(ctx, config_path=args.config)

        logging.info(f"Web interface starting on {host}:{port}")
        # Orientation posts arrive several times per second
        uvicorn.run(create_app(), host=host, port=port, log_level="info", access_log=False)

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    except (FileNotFoundError, ValueError) as e:
        logging.error(f"Swivel Counter failed: {e}")
        sys.exit(1)
    finally:
        if ctx is not None:
            ctx.close()
        web_state.clear()
        logging.info("Swivel Counter stopped")


if __name__ == "__main__":
    main()
