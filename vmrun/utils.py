"""Utility functions for vmrun."""

from __future__ import annotations

import errno
import os
import sys
from pathlib import Path
from typing import Optional

from vmrun.constants import _LOG_VERBOSE, TRANSLATION_DIR


def log(level: str, message: str) -> None:
    """Lightweight levelled logging; colours only when stdout is a terminal."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "") if _stdout_is_tty() else ""
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def _stdout_is_tty() -> bool:
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def is_pid_running(pid: int) -> bool:
    """Return True if a process with this pid exists (signal 0 check)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except OSError as exc:
        # EPERM: the process exists but belongs to another user
        return exc.errno == errno.EPERM
    return True


def read_pid(path: Path) -> Optional[int]:
    """Read a pid marker; None when absent or garbled."""
    try:
        return int(path.read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def is_writable(path: Path) -> bool:
    """True when ``path`` is absent (it will be created) or writable by us."""
    if not path.exists():
        return True
    return os.access(path, os.W_OK)


def kvm_available() -> bool:
    """Return True if /dev/kvm exists and can be opened."""
    kvm_path = Path("/dev/kvm")
    if not kvm_path.exists():
        return False
    try:
        fd = os.open(kvm_path, os.O_RDONLY)
    except OSError:
        return False
    else:
        os.close(fd)
        return True


def translation_available(share_dir: Path = TRANSLATION_DIR) -> bool:
    """Return True if the host ships translators that can be shared into a guest."""
    try:
        return share_dir.is_dir() and any(share_dir.iterdir())
    except OSError:
        return False
