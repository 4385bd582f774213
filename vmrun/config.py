"""VM config loading for vmrun.

Each VM directory holds a ``config.yaml`` written at provisioning time::

    os: linux            # or macos
    cpus: 2
    memory: 2048         # MiB
    disk: disk.qcow2     # relative to the VM directory
    translation: false   # linux only
    uefi: true           # linux only
    loader: OpenCore.fd  # macos only, required
    nvram: OVMF_VARS.fd  # macos only
"""

from __future__ import annotations

from typing import Any, Dict

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vmrun.constants import DEFAULT_CPUS, DEFAULT_DISK_NAME, DEFAULT_MEMORY_MB, GUEST_KINDS, MIN_MEMORY_MB
from vmrun.directory import VMDirectory
from vmrun.exceptions import ConfigError
from vmrun.models import GuestConfig, LinuxGuest, MacOSGuest, VMConfig

_LINUX_ONLY_KEYS = {"uefi"}
_MACOS_ONLY_KEYS = {"loader", "nvram"}


def load_config(directory: VMDirectory) -> VMConfig:
    """Read and parse the config of an initialized VM directory."""
    path = directory.config_path
    if not path.is_file():
        raise ConfigError(f"Config missing: {path}")
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping")
    try:
        return parse_config(data)
    except ConfigError as exc:
        raise ConfigError(f"{path}: {exc}") from exc


def parse_config(data: Dict[str, Any]) -> VMConfig:
    kind = str(data.get("os", "")).strip().lower()
    if kind not in GUEST_KINDS:
        raise ConfigError(f"Unknown os '{data.get('os')}'. Supported: {', '.join(GUEST_KINDS)}")

    cpus = _int_field(data, "cpus", DEFAULT_CPUS, min_val=1)
    memory_mb = _int_field(data, "memory", DEFAULT_MEMORY_MB, min_val=MIN_MEMORY_MB)
    disk = str(data.get("disk") or DEFAULT_DISK_NAME).strip()
    if not disk:
        raise ConfigError("disk must not be empty")
    translation = _bool_field(data, "translation", False)

    return VMConfig(
        guest=_parse_guest(kind, data),
        cpus=cpus,
        memory_mb=memory_mb,
        disk=disk,
        translation=translation,
    )


def _parse_guest(kind: str, data: Dict[str, Any]) -> GuestConfig:
    if kind == "linux":
        stray = sorted(_MACOS_ONLY_KEYS & data.keys())
        if stray:
            raise ConfigError(f"Keys not valid for linux guests: {', '.join(stray)}")
        return LinuxGuest(uefi=_bool_field(data, "uefi", True))

    stray = sorted(_LINUX_ONLY_KEYS & data.keys())
    if stray:
        raise ConfigError(f"Keys not valid for macos guests: {', '.join(stray)}")
    loader = data.get("loader")
    if not loader:
        raise ConfigError("macos guests require a firmware 'loader'")
    nvram = data.get("nvram")
    return MacOSGuest(loader=str(loader), nvram=str(nvram) if nvram else None)


def _int_field(data: Dict[str, Any], key: str, default: int, min_val: int) -> int:
    raw = data.get(key, default)
    if isinstance(raw, bool):
        raise ConfigError(f"{key} must be an integer (got '{raw}')")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer (got '{raw}')")
    if value < min_val:
        raise ConfigError(f"{key} must be >= {min_val} (got {value})")
    return value


def _bool_field(data: Dict[str, Any], key: str, default: bool) -> bool:
    raw = data.get(key, default)
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise ConfigError(f"{key} must be true or false (got '{raw}')")
    return raw
