"""Graphical console via virt-viewer."""

from __future__ import annotations

import asyncio
from typing import List, Optional

from vmrun.constants import LIBVIRT_URI, VIEWER_COMMAND
from vmrun.utils import log


class ViewerDisplay:
    """A viewer window attached to the machine's domain.

    Closing the window ends the viewer process, which the orchestrator treats
    as a request to stop the VM.
    """

    def __init__(self, machine, auto_resize: bool, command: str = VIEWER_COMMAND) -> None:
        self.machine = machine
        self.auto_resize = auto_resize
        self.command = command
        self._proc: Optional[asyncio.subprocess.Process] = None

    def argv(self) -> List[str]:
        uri = getattr(self.machine, "uri", LIBVIRT_URI)
        return [
            self.command,
            "--connect",
            uri,
            "--wait",
            "--auto-resize",
            "always" if self.auto_resize else "never",
            self.machine.name,
        ]

    async def attach(self) -> None:
        cmd = self.argv()
        log("DEBUG", f"Running: {' '.join(cmd)}")
        try:
            self._proc = await asyncio.create_subprocess_exec(*cmd, stdin=asyncio.subprocess.DEVNULL)
        except OSError as exc:
            log("WARN", f"Could not open display with {self.command}: {exc}")
            self._proc = None
            return
        log("INFO", f"Display attached to {self.machine.name} (close the window to stop the vm)")

    async def wait_closed(self) -> None:
        if self._proc is None:
            # No window to close; block until cancelled
            await asyncio.Event().wait()
            return
        returncode = await self._proc.wait()
        log("INFO", f"Display closed (status {returncode})")

    async def close(self) -> None:
        if self._proc is None or self._proc.returncode is not None:
            return
        self._proc.terminate()
        try:
            await asyncio.wait_for(self._proc.wait(), timeout=5)
        except asyncio.TimeoutError:
            self._proc.kill()
            await self._proc.wait()
