"""vmrun package."""

__version__ = "0.1.0"

__all__ = [
    "cli",
    "config",
    "constants",
    "detach",
    "directory",
    "display",
    "domain",
    "exceptions",
    "lifecycle",
    "lock",
    "machine",
    "models",
    "orchestrator",
    "signals",
    "utils",
    "validator",
]
