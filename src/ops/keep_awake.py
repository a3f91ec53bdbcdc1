"""
Best-effort keep-awake while detection is running.

On Linux hosts with systemd, holds an idle/sleep inhibitor by running
``systemd-inhibit`` for as long as the lock is held. Anywhere else the lock
is a no-op. Failures never propagate: detection must not depend on it.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from typing import List, Optional

INHIBIT_COMMAND = "systemd-inhibit"


class KeepAwake:
    """
    Screen/system keep-awake lock.

    acquire() and release() are idempotent and never raise.
    """

    def __init__(self, enabled: bool = True, reason: str = "Swivel detection running"):
        self._enabled = enabled
        self._reason = reason
        self._proc: Optional[subprocess.Popen] = None

    @property
    def held(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def _command(self) -> Optional[List[str]]:
        if sys.platform != "linux":
            return None
        exe = shutil.which(INHIBIT_COMMAND)
        if exe is None:
            return None
        return [
            exe,
            "--what=idle:sleep",
            "--who=swivel-counter",
            f"--why={self._reason}",
            "--mode=block",
            "sleep",
            "infinity",
        ]

    def acquire(self) -> bool:
        """Try to take the lock; returns True if it is held afterwards."""
        if not self._enabled:
            return False
        if self.held:
            return True

        cmd = self._command()
        if cmd is None:
            logging.debug("Keep-awake not supported on this host")
            return False

        try:
            self._proc = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            logging.debug(f"Keep-awake acquired (pid {self._proc.pid})")
            return True
        except OSError as e:
            logging.debug(f"Keep-awake unavailable: {e}")
            self._proc = None
            return False

    def release(self) -> None:
        if self._proc is None:
            return
        proc, self._proc = self._proc, None
        try:
            proc.terminate()
            proc.wait(timeout=2)
            logging.debug("Keep-awake released")
        except (OSError, subprocess.TimeoutExpired) as e:
            logging.debug(f"Keep-awake release failed: {e}")
            try:
                proc.kill()
            except OSError as kill_error:
                logging.debug(f"Keep-awake kill failed: {kill_error}")
