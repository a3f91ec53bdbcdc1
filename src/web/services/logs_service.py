from __future__ import annotations

from collections import deque
from typing import List, Optional


class LogsService:
    MAX_LINES = 2000

    @staticmethod
    def tail(path: Optional[str], lines: int = 200, contains: Optional[str] = None) -> List[str]:
        """Last `lines` log lines, optionally only those containing `contains` (e.g. "[SWIVEL]")."""
        if not path:
            return ["(log_path not configured)"]
        lines = max(1, min(lines, LogsService.MAX_LINES))
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                selected = (line.rstrip("\n") for line in f if not contains or contains in line)
                return list(deque(selected, maxlen=lines))
        except FileNotFoundError:
            return [f"(log file not found: {path})"]
        except OSError as e:
            return [f"(failed to read log file: {e})"]
