"""PID marker for the monitor daemon.

The marker is a plain-text file holding the daemon's process id. It only
counts as "running" while that process is alive; a marker left behind by a
dead process is removed the first time anyone looks at it.
"""
from __future__ import annotations

import logging
import os
import signal
import time
from typing import Optional


def _reap(pid: int) -> bool:
    """Collect ``pid`` if it is our own exited child; True when it was reaped."""
    try:
        reaped, _ = os.waitpid(pid, os.WNOHANG)
    except ChildProcessError:
        # Not our child
        return False
    return reaped == pid


def pid_alive(pid: int) -> bool:
    """True if ``pid`` denotes a live process (checked with signal 0)."""
    if pid <= 0:
        return False
    if _reap(pid):
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to someone else
        return True
    return True


def terminate_process(pid: int, timeout: float = 10.0, poll_interval: float = 0.1) -> bool:
    """SIGTERM ``pid``, wait up to ``timeout`` seconds, then SIGKILL.

    Returns True if the process is gone afterwards.
    """
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        return True

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not pid_alive(pid):
            return True
        time.sleep(poll_interval)

    try:
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        return True
    time.sleep(poll_interval)
    return not pid_alive(pid)


class PidFile:
    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        self.path = path
        self.logger = logger or logging.getLogger(__name__)

    def read(self) -> Optional[int]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return int(f.read().strip())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            self.logger.warning(f"Unreadable daemon PID file {self.path}: {e}")
            return None

    def write(self, pid: int) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(str(pid))

    def remove(self, owner: Optional[int] = None) -> None:
        """Delete the marker; with ``owner`` only if it still names that pid."""
        if owner is not None and self.read() not in (owner, None):
            return
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass

    def running_pid(self) -> Optional[int]:
        """PID of the live daemon, or None (a stale marker is removed)."""
        if not os.path.exists(self.path):
            return None
        pid = self.read()
        if pid is not None and pid_alive(pid):
            return pid
        self.logger.info(f"Removing stale daemon PID file {self.path} (pid={pid})")
        self.remove()
        return None

    def is_running(self) -> bool:
        return self.running_pid() is not None
