"""Daemon single-instance lock."""

import fcntl
import os
import sys
from pathlib import Path
from typing import Optional


def default_pid_file() -> Path:
    state_home = os.environ.get("XDG_STATE_HOME", str(Path.home() / ".local/state"))
    return Path(state_home) / "rss-reader" / "daemon.pid"


class DaemonLock:
    """Prevents multiple daemon instances via fcntl file lock.

    The lock is held for the life of the process; the kernel drops it when
    the process exits, so a crashed daemon never leaves a stale lock.
    """

    def __init__(self, pid_file: Optional[Path] = None):
        self.pid_file = pid_file or default_pid_file()
        self._handle = None

    def __enter__(self):
        self.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self._handle = open(self.pid_file, "w")
        try:
            fcntl.flock(self._handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            self._handle.close()
            self._handle = None
            sys.exit(f"Daemon already running (lock held on {self.pid_file})")
        self._handle.write(str(os.getpid()))
        self._handle.flush()
        return self

    def __exit__(self, *_):
        pass  # fcntl releases lock when process exits


def acquire_daemon_lock(pid_file: Optional[Path] = None) -> DaemonLock:
    """Convenience function for use with 'with' statement."""
    return DaemonLock(pid_file)
