"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import tempfile

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
detection:
  tolerance_deg: 15
  debounce_ms: 4000
  alignment_window_ms: 4000
  waypoint_count: 0

counter:
  auto_step: 1.0
  manual_step: 0.5

sensor:
  source: "push"
  calibration_timeout_ms: 2000

storage:
  local_database_path: "data/test.sqlite"
  retention_days: 7

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "detection": {
            "tolerance_deg": 10.0,
            "debounce_ms": 1000,
            "alignment_window_ms": 4000,
            "waypoint_count": 0,
        },
        "counter": {
            "auto_step": 1.0,
            "manual_step": 0.5,
        },
        "sensor": {
            "source": "push",
            "calibration_timeout_ms": 2000,
            "keep_awake": False,
        },
        "storage": {
            "local_database_path": "data/test.sqlite",
            "retention_days": 30,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    fd, path = tempfile.mkstemp(suffix=".sqlite")
    os.close(fd)
    yield path
    try:
        os.unlink(path)
    except OSError:
        pass
