"""Precondition checks for a run request."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from vmrun.config import load_config
from vmrun.directory import VMDirectory
from vmrun.exceptions import ValidationError
from vmrun.models import LinuxGuest, MacOSGuest, RunRequest, VMConfig
from vmrun.utils import is_writable, translation_available


def validate_request(
    request: RunRequest,
    directory: VMDirectory,
    log_file: Path,
    loader: Callable[[VMDirectory], VMConfig] = load_config,
) -> VMConfig:
    """Check ``request`` against the VM's on-disk state and return its config.

    Raises ValidationError naming the first violated rule. Nothing is written.
    The "vm is running" check is advisory: the directory lock taken later is
    what actually keeps two processes apart.
    """
    if request.detached:
        if request.gui or request.mount is not None:
            raise ValidationError("-d must not be used with --gui and --mount")
        if not is_writable(log_file):
            raise ValidationError(f"detach mode log file is not writable, file={log_file}")

    if not directory.initialized():
        raise ValidationError(f"vm not initialized, name={request.name}")
    if directory.pid() is not None:
        raise ValidationError(f"vm is running, name={request.name}")

    config = loader(directory)
    guest = config.guest
    if isinstance(guest, LinuxGuest):
        _validate_linux(request, config)
    elif isinstance(guest, MacOSGuest):
        _validate_macos(request, config)
    else:
        raise ValidationError(f"unsupported guest, os={guest!r}")
    return config


def _validate_linux(request: RunRequest, config: VMConfig) -> None:
    if config.translation and not translation_available():
        raise ValidationError("translation layer is not available on host")
    if request.mount is not None and (not request.mount.exists() or request.mount.is_dir()):
        raise ValidationError(f"mount file not found, mount={request.mount}")


def _validate_macos(request: RunRequest, config: VMConfig) -> None:
    if not request.gui:
        # headless remote-display modes do not work over user-mode NAT
        raise ValidationError("macOS must be used with gui")
    if request.mount is not None:
        raise ValidationError("macOS does not support mount")
    if config.translation:
        raise ValidationError("macOS does not support translation layer")
