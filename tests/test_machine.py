"""Tests for vmrun.machine module."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import libvirt
import pytest

from vmrun.exceptions import ConstructionError, LifecycleError
from vmrun.machine import LibvirtMachine, create_machine
from vmrun.models import LinuxGuest, VMConfig


def _libvirt_error(message, code=None):
    exc = libvirt.libvirtError(message)
    exc.get_error_code = lambda: code
    return exc


def _domain(active=False):
    domain = MagicMock()
    domain.name.return_value = "vmrun-alpine"
    domain.isActive.return_value = active
    return domain


class TestLibvirtMachine:
    def test_start_creates_domain(self):
        domain = _domain()
        machine = LibvirtMachine(MagicMock(), domain)
        machine.start()
        domain.create.assert_called_once()
        assert machine.name == "vmrun-alpine"

    def test_start_skips_active_domain(self):
        domain = _domain(active=True)
        LibvirtMachine(MagicMock(), domain).start()
        domain.create.assert_not_called()

    def test_start_failure(self):
        domain = _domain()
        domain.create.side_effect = libvirt.libvirtError("no firmware")
        with pytest.raises(LifecycleError, match="Failed to start domain"):
            LibvirtMachine(MagicMock(), domain).start()

    def test_graceful_stop(self):
        domain = _domain()
        domain.isActive.side_effect = [True, False]
        LibvirtMachine(MagicMock(), domain, poll_interval=0).stop()
        domain.shutdown.assert_called_once()
        domain.destroy.assert_not_called()

    def test_stop_escalates_after_timeout(self):
        domain = _domain(active=True)
        LibvirtMachine(MagicMock(), domain, shutdown_timeout=0.05, poll_interval=0.01).stop()
        domain.shutdown.assert_called_once()
        domain.destroy.assert_called_once()

    def test_stop_destroys_when_shutdown_fails(self):
        domain = _domain(active=True)
        domain.shutdown.side_effect = libvirt.libvirtError("agent gone")
        LibvirtMachine(MagicMock(), domain).stop()
        domain.destroy.assert_called_once()

    def test_destroy_failure(self):
        domain = _domain(active=True)
        domain.shutdown.side_effect = libvirt.libvirtError("agent gone")
        domain.destroy.side_effect = libvirt.libvirtError("busy")
        with pytest.raises(LifecycleError, match="Failed to destroy domain"):
            LibvirtMachine(MagicMock(), domain).stop()

    def test_is_running_false_when_domain_is_gone(self):
        domain = _domain()
        domain.isActive.side_effect = _libvirt_error("gone", code=libvirt.VIR_ERR_NO_DOMAIN)
        assert LibvirtMachine(MagicMock(), domain).is_running() is False

    def test_is_running_raises_on_rpc_error(self):
        domain = _domain()
        domain.isActive.side_effect = _libvirt_error("connection reset", code=38)
        with pytest.raises(LifecycleError, match="Failed to query domain vmrun-alpine"):
            LibvirtMachine(MagicMock(), domain).is_running()

    def test_close_is_idempotent(self):
        conn = MagicMock()
        machine = LibvirtMachine(conn, _domain())
        machine.close()
        machine.close()
        conn.close.assert_called_once()


class TestCreateMachine:
    @pytest.fixture
    def config(self):
        return VMConfig(guest=LinuxGuest(), cpus=2, memory_mb=2048, disk="disk.qcow2")

    def test_defines_domain(self, home, config):
        conn = MagicMock()
        conn.lookupByName.side_effect = libvirt.libvirtError("not found")
        conn.defineXML.return_value = _domain()
        with patch("vmrun.machine.libvirt.open", return_value=conn), patch(
            "vmrun.machine.kvm_available", return_value=False
        ):
            machine = create_machine(home.vm_dir("alpine"), config, False, None, uri="test:///default")

        xml = conn.defineXML.call_args[0][0]
        assert "<name>vmrun-alpine</name>" in xml
        assert 'type="qemu"' in xml
        assert machine.uri == "test:///default"

    def test_replaces_stale_definition(self, home, config):
        conn = MagicMock()
        stale = _domain(active=False)
        conn.lookupByName.return_value = stale
        conn.defineXML.return_value = _domain()
        with patch("vmrun.machine.libvirt.open", return_value=conn), patch(
            "vmrun.machine.kvm_available", return_value=True
        ):
            create_machine(home.vm_dir("alpine"), config, False, None)
        stale.undefineFlags.assert_called_once_with(libvirt.VIR_DOMAIN_UNDEFINE_KEEP_NVRAM)

    def test_active_foreign_domain_rejected(self, home, config):
        conn = MagicMock()
        conn.lookupByName.return_value = _domain(active=True)
        with patch("vmrun.machine.libvirt.open", return_value=conn), patch(
            "vmrun.machine.kvm_available", return_value=True
        ):
            with pytest.raises(ConstructionError, match="already active outside vmrun"):
                create_machine(home.vm_dir("alpine"), config, False, None)
        conn.close.assert_called_once()
        conn.defineXML.assert_not_called()

    def test_connection_failure(self, home, config):
        with patch("vmrun.machine.libvirt.open", side_effect=libvirt.libvirtError("no daemon")), patch(
            "vmrun.machine.kvm_available", return_value=True
        ):
            with pytest.raises(ConstructionError, match="Failed to open libvirt connection"):
                create_machine(home.vm_dir("alpine"), config, False, None)

    def test_define_failure_closes_connection(self, home, config):
        conn = MagicMock()
        conn.lookupByName.side_effect = libvirt.libvirtError("not found")
        conn.defineXML.side_effect = libvirt.libvirtError("bad xml")
        with patch("vmrun.machine.libvirt.open", return_value=conn), patch(
            "vmrun.machine.kvm_available", return_value=True
        ):
            with pytest.raises(ConstructionError, match="Failed to define domain vmrun-alpine"):
                create_machine(home.vm_dir("alpine"), config, False, None)
        conn.close.assert_called_once()
