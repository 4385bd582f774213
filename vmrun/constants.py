"""Global constants and path configuration for vmrun."""

from __future__ import annotations

import os
import re
import signal
from pathlib import Path

TRUTHY = {"1", "true", "yes", "on"}

# VMRUN_HOME holds every VM directory plus the detached-mode log file.
HOME_DIR = Path(os.environ.get("VMRUN_HOME", str(Path.home() / ".vmrun"))).expanduser()
VMS_SUBDIR = "vms"
LOG_FILE = Path(os.environ.get("VMRUN_LOG_FILE", str(HOME_DIR / "vmrun.log"))).expanduser()

CONFIG_FILE_NAME = "config.yaml"
LOCK_FILE_NAME = "vm.lock"
PID_FILE_NAME = "vm.pid"
DEFAULT_DISK_NAME = "disk.qcow2"

LIBVIRT_URI = os.environ.get("LIBVIRT_URI", "qemu:///session")
DOMAIN_PREFIX = "vmrun-"
VIEWER_COMMAND = os.environ.get("VMRUN_VIEWER", "virt-viewer")

# Host directory with user-mode translators (qemu-user binaries registered via binfmt_misc),
# shared read-only into Linux guests when the translation layer is enabled.
TRANSLATION_DIR = Path(os.environ.get("VMRUN_TRANSLATION_DIR", "/usr/libexec/qemu-binfmt"))
TRANSLATION_TAG = "translation"

SHUTDOWN_TIMEOUT = float(os.environ.get("VMRUN_SHUTDOWN_TIMEOUT", "30"))
WATCH_INTERVAL = 1.0

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)

GUEST_KINDS = ("linux", "macos")
MIN_MEMORY_MB = 128
DEFAULT_MEMORY_MB = 2048
DEFAULT_CPUS = 2

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

VM_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
