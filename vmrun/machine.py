"""libvirt-backed machine factory for vmrun."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

try:
    import libvirt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit(f"libvirt python bindings not available: {exc}")

from vmrun.constants import LIBVIRT_URI, SHUTDOWN_TIMEOUT
from vmrun.directory import VMDirectory
from vmrun.domain import domain_name, render_domain_xml
from vmrun.exceptions import ConstructionError, LifecycleError
from vmrun.models import VMConfig
from vmrun.utils import kvm_available, log


def _message(exc: Exception) -> str:
    return exc.get_error_message() if hasattr(exc, "get_error_message") else str(exc)


def _error_code(exc: Exception) -> Optional[int]:
    return exc.get_error_code() if hasattr(exc, "get_error_code") else None


class LibvirtMachine:
    def __init__(
        self,
        conn,
        domain,
        uri: str = LIBVIRT_URI,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
        poll_interval: float = 0.5,
    ) -> None:
        self.conn = conn
        self.domain = domain
        self.uri = uri
        self.name = domain.name()
        self.shutdown_timeout = shutdown_timeout
        self.poll_interval = poll_interval

    def start(self) -> None:
        if self.domain.isActive():
            log("INFO", f"Domain {self.name} already running")
            return
        try:
            self.domain.create()
        except libvirt.libvirtError as exc:
            raise LifecycleError(f"Failed to start domain: {_message(exc)}") from exc

    def stop(self) -> None:
        """ACPI shutdown, then destroy once the grace period runs out."""
        try:
            if not self.domain.isActive():
                return
            self.domain.shutdown()
        except libvirt.libvirtError as exc:
            log("WARN", f"Graceful shutdown of {self.name} failed: {_message(exc)}")
            self._destroy()
            return

        deadline = time.time() + self.shutdown_timeout
        while time.time() < deadline:
            if not self.is_running():
                return
            time.sleep(self.poll_interval)
        log("WARN", f"Domain {self.name} ignored shutdown for {int(self.shutdown_timeout)}s, destroying")
        self._destroy()

    def _destroy(self) -> None:
        try:
            if self.domain.isActive():
                self.domain.destroy()
        except libvirt.libvirtError as exc:
            raise LifecycleError(f"Failed to destroy domain: {_message(exc)}") from exc

    def is_running(self) -> bool:
        """False once the domain is inactive or gone; other libvirt errors raise LifecycleError."""
        try:
            return bool(self.domain.isActive())
        except libvirt.libvirtError as exc:
            if _error_code(exc) == libvirt.VIR_ERR_NO_DOMAIN:
                return False
            raise LifecycleError(f"Failed to query domain {self.name}: {_message(exc)}") from exc

    def close(self) -> None:
        if self.conn is not None:
            try:
                self.conn.close()
            except libvirt.libvirtError:
                log("DEBUG", f"Could not close libvirt connection to {self.uri}")
            self.conn = None


def create_machine(
    directory: VMDirectory,
    config: VMConfig,
    gui: bool,
    mount: Optional[Path],
    uri: str = LIBVIRT_URI,
) -> LibvirtMachine:
    """Define (or redefine) the VM's domain and hand back a stopped machine."""
    xml = render_domain_xml(directory, config, gui, mount, use_kvm=kvm_available())
    try:
        conn = libvirt.open(uri)
    except libvirt.libvirtError as exc:
        raise ConstructionError(f"Failed to open libvirt connection to {uri}: {_message(exc)}") from exc
    if conn is None:
        raise ConstructionError(f"Failed to open libvirt connection to {uri}")

    name = domain_name(directory.name)
    try:
        _undefine_stale(conn, name)
        domain = conn.defineXML(xml)
    except ConstructionError:
        conn.close()
        raise
    except libvirt.libvirtError as exc:
        conn.close()
        raise ConstructionError(f"Failed to define domain {name}: {_message(exc)}") from exc
    if domain is None:
        conn.close()
        raise ConstructionError(f"Failed to define domain {name}")
    log("DEBUG", f"Defined domain {name} on {uri}")
    return LibvirtMachine(conn, domain, uri=uri)


def _undefine_stale(conn, name: str) -> None:
    """Drop a leftover inactive definition; an active one means another runner owns it."""
    try:
        existing = conn.lookupByName(name)
    except libvirt.libvirtError:
        return
    if existing.isActive():
        raise ConstructionError(f"Domain {name} is already active outside vmrun")
    try:
        existing.undefineFlags(libvirt.VIR_DOMAIN_UNDEFINE_KEEP_NVRAM)
    except libvirt.libvirtError:
        existing.undefine()
