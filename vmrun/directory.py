"""On-disk VM directories for vmrun."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from vmrun.constants import (
    CONFIG_FILE_NAME,
    HOME_DIR,
    LOCK_FILE_NAME,
    PID_FILE_NAME,
    VM_NAME_RE,
    VMS_SUBDIR,
)
from vmrun.exceptions import ValidationError
from vmrun.lock import DirectoryLock
from vmrun.utils import is_pid_running, read_pid


class VMDirectory:
    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        self.path = path

    @property
    def config_path(self) -> Path:
        return self.path / CONFIG_FILE_NAME

    @property
    def lock_path(self) -> Path:
        return self.path / LOCK_FILE_NAME

    @property
    def pid_path(self) -> Path:
        return self.path / PID_FILE_NAME

    def initialized(self) -> bool:
        return self.config_path.is_file()

    def pid(self) -> Optional[int]:
        """PID of the live process owning this VM, if any.

        A marker left behind by a crashed process is ignored.
        """
        pid = read_pid(self.pid_path)
        if pid is None or not is_pid_running(pid):
            return None
        return pid

    def lock(self) -> Optional[DirectoryLock]:
        return DirectoryLock.acquire(self.lock_path, self.pid_path)

    def __repr__(self) -> str:
        return f"VMDirectory(name={self.name!r}, path={str(self.path)!r})"


class Home:
    """Root directory holding one sub-directory per VM."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = root if root is not None else HOME_DIR

    @property
    def vms_dir(self) -> Path:
        return self.root / VMS_SUBDIR

    def vm_dir(self, name: str) -> VMDirectory:
        if not VM_NAME_RE.match(name):
            raise ValidationError(f"invalid vm name, name={name}")
        return VMDirectory(name, self.vms_dir / name)

    def vm_dirs(self) -> List[VMDirectory]:
        if not self.vms_dir.is_dir():
            return []
        return [
            VMDirectory(entry.name, entry)
            for entry in sorted(self.vms_dir.iterdir())
            if entry.is_dir() and VM_NAME_RE.match(entry.name)
        ]
