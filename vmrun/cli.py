"""CLI entry points for vmrun."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from vmrun import __version__
from vmrun.directory import Home
from vmrun.exceptions import VMRunError
from vmrun.models import RunRequest
from vmrun.orchestrator import run
from vmrun.utils import log


def list_vms(home: Optional[Home] = None) -> None:
    """Print the known VM names, one per line, with their owning PID if running."""
    home = home if home is not None else Home()
    for directory in home.vm_dirs():
        if not directory.initialized():
            continue
        pid = directory.pid()
        status = f"running (PID {pid})" if pid is not None else "stopped"
        print(f"{directory.name}\t{status}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vmrun", description="Run and supervise a virtual machine")
    parser.add_argument("--version", action="version", version=f"vmrun {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    run_parser = subparsers.add_parser("run", help="run vm")
    run_parser.add_argument("name", help="vm name")
    run_parser.add_argument("-d", "--detached", action="store_true", help="run vm in background")
    run_parser.add_argument("--gui", action="store_true", help="open UI window")
    run_parser.add_argument(
        "--mount",
        type=Path,
        default=None,
        metavar="PATH",
        help='attach disk image in read only mode, e.g. --mount="debian.iso"',
    )

    subparsers.add_parser("list", help="list vms")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "list":
        try:
            list_vms()
        except (OSError, VMRunError) as exc:
            log("ERROR", str(exc))
            return 1
        return 0

    request = RunRequest(
        name=args.name,
        detached=args.detached,
        gui=args.gui,
        mount=args.mount,
    )
    return run(request)
