"""Run/stop state machine wrapping one machine instance."""

from __future__ import annotations

import asyncio
import enum
from typing import Optional, Protocol

from vmrun.constants import WATCH_INTERVAL
from vmrun.exceptions import LifecycleError
from vmrun.utils import log


class Machine(Protocol):
    """What the controller needs from a runnable machine. All calls may block."""

    name: str

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def is_running(self) -> bool: ...

    def close(self) -> None: ...


class VMState(str, enum.Enum):
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class VM:
    """Created -> Starting -> Running -> Stopping -> Stopped.

    ``start`` and ``stop`` only ever run on the event loop thread; the
    blocking machine calls are pushed to worker threads, so state checks and
    transitions between awaits need no locking. ``Stopped`` is terminal.
    """

    def __init__(self, machine: Machine, name: str) -> None:
        self.machine = machine
        self.name = name
        self.state = VMState.CREATED
        self.error: Optional[LifecycleError] = None
        self.stopped = asyncio.Event()
        # set once machine.start() has returned or raised
        self._start_settled = asyncio.Event()

    async def start(self) -> None:
        if self.state is not VMState.CREATED:
            log("WARN", f"vm {self.name} cannot start from state {self.state.value}")
            return
        self.state = VMState.STARTING
        log("INFO", f"Starting vm {self.name}")
        try:
            await asyncio.to_thread(self.machine.start)
        except Exception as exc:
            self.error = LifecycleError(f"failed to start vm, name={self.name}: {exc}")
            self._mark_stopped()
            raise self.error from exc
        finally:
            self._start_settled.set()
        if self.state is VMState.STARTING:
            self.state = VMState.RUNNING
            log("SUCCESS", f"vm {self.name} is running")

    async def stop(self) -> None:
        """Stop the machine once; a stop during Starting waits for the start to settle."""
        if self.state is VMState.CREATED:
            log("DEBUG", f"vm {self.name} was never started; nothing to stop")
            return
        if self.state in (VMState.STOPPING, VMState.STOPPED):
            return
        starting = self.state is VMState.STARTING
        self.state = VMState.STOPPING
        if starting:
            log("INFO", f"vm {self.name} is still starting; stopping once the start completes")
            await self._start_settled.wait()
            if self.state is VMState.STOPPED:
                # the start failed, nothing is running
                return
        log("INFO", f"Stopping vm {self.name}")
        try:
            await asyncio.to_thread(self.machine.stop)
        except Exception as exc:
            self.error = LifecycleError(f"failed to stop vm, name={self.name}: {exc}")
            log("ERROR", str(self.error))
        finally:
            self._mark_stopped()

    async def watch(self, interval: Optional[float] = None) -> None:
        """Notice a guest that powered itself off while Running."""
        if interval is None:
            interval = WATCH_INTERVAL
        while self.state is not VMState.STOPPED:
            await asyncio.sleep(interval)
            if self.state is not VMState.RUNNING:
                continue
            try:
                running = await asyncio.to_thread(self.machine.is_running)
            except Exception as exc:
                log("WARN", f"Could not query vm {self.name}, retrying: {exc}")
                continue
            if not running and self.state is VMState.RUNNING:
                log("INFO", f"vm {self.name} is no longer active")
                self._mark_stopped()

    def _mark_stopped(self) -> None:
        self.state = VMState.STOPPED
        self.stopped.set()
        log("INFO", f"vm {self.name} stopped")
