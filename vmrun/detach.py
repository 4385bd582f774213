"""Re-launch vmrun in the background for detached mode."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import List

from vmrun.exceptions import SpawnError
from vmrun.utils import ensure_directory, log


def child_command(name: str) -> List[str]:
    """Command line of the child: same program, same VM, foreground."""
    return [sys.executable, "-m", "vmrun", "run", name]


def launch_in_background(name: str, log_file: Path) -> subprocess.Popen:
    """Spawn the foreground run as a child writing to ``log_file``.

    The parent never touches the VM lock; the child acquires it itself.
    """
    cmd = child_command(name)
    log("DEBUG", f"Running in background: {' '.join(cmd)}")
    try:
        ensure_directory(log_file.parent)
        with open(log_file, "ab") as output:
            return subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
                start_new_session=True,
                close_fds=True,
            )
    except OSError as exc:
        raise SpawnError(f"failed to launch vm in background, name={name}: {exc}") from exc
