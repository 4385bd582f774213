"""Exclusive per-directory lock for vmrun.

The lock is a non-blocking ``fcntl.flock`` on a sentinel file. flock locks
belong to the open file description, so the lock lives exactly as long as the
descriptor held by :class:`DirectoryLock`; the kernel drops it when the owning
process exits. Alongside the lock a PID marker is written so other processes
can report who owns the VM without touching the lock itself.
"""

from __future__ import annotations

import fcntl
import os
from pathlib import Path
from typing import Optional

from vmrun.utils import log


class DirectoryLock:
    def __init__(self, fd: int, lock_path: Path, pid_path: Path) -> None:
        self._fd: Optional[int] = fd
        self.lock_path = lock_path
        self.pid_path = pid_path
        self.pid = os.getpid()

    @classmethod
    def acquire(cls, lock_path: Path, pid_path: Path) -> Optional["DirectoryLock"]:
        """Take the lock, or return None when another holder already has it.

        Losing the race is a normal outcome, not an error.
        """
        fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            log("DEBUG", f"Lock {lock_path} is held by another process")
            return None
        except OSError:
            os.close(fd)
            raise

        lock = cls(fd, lock_path, pid_path)
        try:
            lock._write_marker()
        except OSError:
            lock.release()
            raise
        log("DEBUG", f"Acquired {lock_path} (PID {lock.pid})")
        return lock

    @property
    def held(self) -> bool:
        return self._fd is not None

    def _write_marker(self) -> None:
        tmp_path = self.pid_path.with_name(self.pid_path.name + ".tmp")
        tmp_path.write_text(f"{self.pid}\n")
        tmp_path.replace(self.pid_path)

    def release(self) -> None:
        """Remove the PID marker and drop the lock. Safe to call twice."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            self.pid_path.unlink(missing_ok=True)
        except OSError as exc:
            log("WARN", f"Failed to remove {self.pid_path}: {exc}")
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        log("DEBUG", f"Released {self.lock_path}")

    def __enter__(self) -> "DirectoryLock":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
