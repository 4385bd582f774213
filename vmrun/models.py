"""Data models for vmrun."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union


class GuestKind(str, enum.Enum):
    LINUX = "linux"
    MACOS = "macos"


@dataclass(frozen=True)
class LinuxGuest:
    uefi: bool = True

    @property
    def kind(self) -> GuestKind:
        return GuestKind.LINUX


@dataclass(frozen=True)
class MacOSGuest:
    loader: str  # firmware image (e.g. OpenCore OVMF build), relative to the VM directory
    nvram: Optional[str] = None

    @property
    def kind(self) -> GuestKind:
        return GuestKind.MACOS


GuestConfig = Union[LinuxGuest, MacOSGuest]


@dataclass(frozen=True)
class VMConfig:
    guest: GuestConfig
    cpus: int
    memory_mb: int
    disk: str
    translation: bool = False

    @property
    def kind(self) -> GuestKind:
        return self.guest.kind


@dataclass(frozen=True)
class RunRequest:
    name: str
    detached: bool = False
    gui: bool = False
    mount: Optional[Path] = None
