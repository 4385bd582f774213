"""Shared test fixtures for vmrun, plus a libvirt stub for hosts without the bindings."""

from __future__ import annotations

import sys
import threading
import types
from pathlib import Path
from typing import List, Optional
from unittest.mock import MagicMock


def _install_libvirt_stub():
    """Inject a minimal libvirt stub into sys.modules if the real library is not available."""
    if "libvirt" in sys.modules:
        return

    try:
        import libvirt  # noqa: F401

        return  # real library available
    except ImportError:
        pass

    stub = types.ModuleType("libvirt")

    class libvirtError(Exception):
        def get_error_message(self):
            return str(self)

        def get_error_code(self):
            return None

    stub.libvirtError = libvirtError
    stub.open = MagicMock(return_value=MagicMock())
    stub.VIR_ERR_NO_DOMAIN = 42
    stub.VIR_DOMAIN_UNDEFINE_KEEP_NVRAM = 8

    sys.modules["libvirt"] = stub


_install_libvirt_stub()

import pytest  # noqa: E402

from vmrun.directory import Home, VMDirectory  # noqa: E402


class FakeMachine:
    """In-memory machine recording every call made by the controller."""

    def __init__(self, name: str = "vmrun-test", start_error: Optional[Exception] = None) -> None:
        self.name = name
        self.uri = "test:///default"
        self.start_error = start_error
        self.stop_error: Optional[Exception] = None
        self.start_calls = 0
        self.stop_calls = 0
        self.closed = False
        self.running = False
        self.stop_gate: Optional[threading.Event] = None
        self.start_gate: Optional[threading.Event] = None
        self.started = threading.Event()
        self.calls: List[str] = []
        # raised one at a time by is_running() before it reports the real state
        self.query_errors: List[Exception] = []

    def start(self) -> None:
        self.start_calls += 1
        if self.start_gate is not None:
            self.start_gate.wait(5)
        self.calls.append("start")
        if self.start_error is not None:
            raise self.start_error
        self.running = True
        self.started.set()

    def stop(self) -> None:
        self.stop_calls += 1
        self.calls.append("stop")
        if self.stop_gate is not None:
            self.stop_gate.wait(5)
        if self.stop_error is not None:
            raise self.stop_error
        self.running = False

    def is_running(self) -> bool:
        if self.query_errors:
            raise self.query_errors.pop(0)
        return self.running

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_machine() -> FakeMachine:
    return FakeMachine()


@pytest.fixture
def home(tmp_path) -> Home:
    return Home(tmp_path / "home")


@pytest.fixture
def make_vm(home):
    """Create an initialized VM directory with the given config lines."""

    def _make(name: str = "alpine", config: str = "os: linux\n") -> VMDirectory:
        directory = home.vm_dir(name)
        directory.path.mkdir(parents=True, exist_ok=True)
        directory.config_path.write_text(config)
        return directory

    return _make


@pytest.fixture
def log_file(tmp_path) -> Path:
    return tmp_path / "logs" / "vmrun.log"
