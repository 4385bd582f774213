"""Run one VM: validate, detach or lock, then supervise until it stops."""

from __future__ import annotations

import asyncio
import signal
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from vmrun.constants import LOG_FILE, TERMINATION_SIGNALS
from vmrun.detach import launch_in_background
from vmrun.directory import Home, VMDirectory
from vmrun.display import ViewerDisplay
from vmrun.exceptions import ContentionError, LifecycleError, VMRunError
from vmrun.lifecycle import VM, Machine
from vmrun.lock import DirectoryLock
from vmrun.models import GuestKind, RunRequest, VMConfig
from vmrun.signals import ShutdownCoordinator
from vmrun.utils import log
from vmrun.validator import validate_request

MachineFactory = Callable[[VMDirectory, VMConfig, bool, Optional[Path]], Machine]
DisplayFactory = Callable[[Machine, bool], ViewerDisplay]


@dataclass
class Resources:
    """Handles that must stay referenced for as long as the VM is supervised.

    Dropping the lock early would silently let a second process drive the VM.
    """

    lock: Optional[DirectoryLock] = None
    machine: Optional[Machine] = None
    coordinator: Optional[ShutdownCoordinator] = None
    display: Optional[ViewerDisplay] = None

    def release(self) -> None:
        if self.machine is not None:
            try:
                self.machine.close()
            except Exception as exc:
                log("WARN", f"Failed to close machine: {exc}")
            self.machine = None
        if self.lock is not None:
            self.lock.release()
            self.lock = None


def _default_machine_factory(
    directory: VMDirectory, config: VMConfig, gui: bool, mount: Optional[Path]
) -> Machine:
    from vmrun.machine import create_machine

    return create_machine(directory, config, gui, mount)


def run(
    request: RunRequest,
    home: Optional[Home] = None,
    log_file: Optional[Path] = None,
    machine_factory: Optional[MachineFactory] = None,
    display_factory: Optional[DisplayFactory] = None,
    signals: Iterable[signal.Signals] = TERMINATION_SIGNALS,
) -> int:
    """Execute a run request and return the process exit code."""
    home = home if home is not None else Home()
    log_file = log_file if log_file is not None else LOG_FILE
    resources = Resources()
    try:
        directory = home.vm_dir(request.name)
        config = validate_request(request, directory, log_file)

        if request.detached:
            proc = launch_in_background(request.name, log_file)
            log("SUCCESS", f"vm launched in background, check log in {log_file} (PID {proc.pid})")
            return 0

        resources.lock = directory.lock()
        if resources.lock is None:
            raise ContentionError(f"vm is already running, name={request.name}")

        factory = machine_factory or _default_machine_factory
        resources.machine = factory(directory, config, request.gui, request.mount)
        return asyncio.run(supervise(request, config, resources, display_factory, signals))
    except VMRunError as exc:
        log("ERROR", str(exc))
        return 1
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        traceback.print_exc()
        return 1
    finally:
        resources.release()


async def supervise(
    request: RunRequest,
    config: VMConfig,
    resources: Resources,
    display_factory: Optional[DisplayFactory] = None,
    signals: Iterable[signal.Signals] = TERMINATION_SIGNALS,
) -> int:
    """Start the machine and wait until it is stopped by a signal, the guest or the display."""
    if resources.machine is None:
        raise LifecycleError("no machine to supervise")
    loop = asyncio.get_running_loop()
    vm = VM(resources.machine, request.name)

    # Handlers go in before anything can wait, so no signal falls through.
    resources.coordinator = ShutdownCoordinator(loop, vm, signals)
    resources.coordinator.install()

    start_task = loop.create_task(vm.start())
    watch_task = loop.create_task(vm.watch())
    waiters = [loop.create_task(vm.stopped.wait())]
    try:
        if request.gui:
            factory = display_factory or ViewerDisplay
            resources.display = factory(resources.machine, config.kind is GuestKind.MACOS)
            await resources.display.attach()
            waiters.append(loop.create_task(resources.display.wait_closed()))

        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        if not vm.stopped.is_set():
            log("INFO", "Display closed, stopping vm")
            await vm.stop()
        await vm.stopped.wait()

        start_result = (await asyncio.gather(start_task, return_exceptions=True))[0]
        if isinstance(start_result, BaseException):
            raise start_result
    finally:
        watch_task.cancel()
        for waiter in waiters:
            waiter.cancel()
        if resources.display is not None:
            await resources.display.close()
        resources.coordinator.close()

    if vm.error is not None:
        return 1
    log("SUCCESS", f"vm {request.name} shut down")
    return 0
