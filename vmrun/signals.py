"""Translate termination signals into an asynchronous VM stop."""

from __future__ import annotations

import asyncio
import signal
from typing import Iterable, List, Set

from vmrun.constants import TERMINATION_SIGNALS
from vmrun.lifecycle import VM
from vmrun.utils import log


class ShutdownCoordinator:
    """Owns the loop's signal watchers and the stop tasks they spawn.

    The handler runs on the event loop (``add_signal_handler``), never in the
    raw signal context, and only schedules ``vm.stop()``. Spawned tasks are
    referenced here until done; the loop itself keeps only weak references.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        vm: VM,
        signals: Iterable[signal.Signals] = TERMINATION_SIGNALS,
    ) -> None:
        self.loop = loop
        self.vm = vm
        self.signals = tuple(signals)
        self.installed: List[signal.Signals] = []
        self._tasks: Set[asyncio.Task] = set()

    def install(self) -> None:
        for sig in self.signals:
            self.loop.add_signal_handler(sig, self._on_signal, sig)
            self.installed.append(sig)
        log("DEBUG", f"Installed handlers for {', '.join(s.name for s in self.installed)}")

    def _on_signal(self, sig: signal.Signals) -> None:
        log("INFO", f"{sig.name} received, stopping vm {self.vm.name}")
        task = self.loop.create_task(self.vm.stop())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def close(self) -> None:
        while self.installed:
            self.loop.remove_signal_handler(self.installed.pop())
