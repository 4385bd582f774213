"""Tests for vmrun.directory module."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from vmrun.directory import Home
from vmrun.exceptions import ValidationError


class TestVMDirectory:
    def test_uninitialized_without_config(self, home):
        directory = home.vm_dir("alpine")
        assert directory.initialized() is False

    def test_initialized_with_config(self, make_vm):
        directory = make_vm("alpine")
        assert directory.initialized() is True
        assert directory.config_path.name == "config.yaml"

    def test_pid_none_without_marker(self, make_vm):
        assert make_vm().pid() is None

    def test_pid_of_live_process(self, make_vm):
        directory = make_vm()
        directory.pid_path.write_text(f"{os.getpid()}\n")
        assert directory.pid() == os.getpid()

    def test_stale_marker_ignored(self, make_vm):
        directory = make_vm()
        directory.pid_path.write_text("424242\n")
        with patch("vmrun.directory.is_pid_running", return_value=False):
            assert directory.pid() is None

    def test_garbled_marker_ignored(self, make_vm):
        directory = make_vm()
        directory.pid_path.write_text("not-a-pid")
        assert directory.pid() is None

    def test_lock_sets_pid(self, make_vm):
        directory = make_vm()
        lock = directory.lock()
        try:
            assert lock is not None
            assert directory.pid() == os.getpid()
            assert directory.lock() is None
        finally:
            lock.release()
        assert directory.pid() is None


class TestHome:
    def test_vm_dir_layout(self, tmp_path):
        home = Home(tmp_path)
        directory = home.vm_dir("alpine")
        assert directory.path == tmp_path / "vms" / "alpine"
        assert directory.name == "alpine"

    @pytest.mark.parametrize("name", ["", "../etc", "a/b", ".hidden"])
    def test_rejects_unsafe_names(self, tmp_path, name):
        with pytest.raises(ValidationError, match="invalid vm name"):
            Home(tmp_path).vm_dir(name)

    def test_vm_dirs_sorted(self, home, make_vm):
        make_vm("debian")
        make_vm("alpine")
        (home.vms_dir / "notes.txt").write_text("x")
        assert [d.name for d in home.vm_dirs()] == ["alpine", "debian"]

    def test_vm_dirs_missing_root(self, tmp_path):
        assert Home(tmp_path / "nowhere").vm_dirs() == []
