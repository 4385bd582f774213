"""Custom exceptions for vmrun."""


class VMRunError(RuntimeError):
    """Base class for every failure the orchestrator turns into an exit code."""


class ValidationError(VMRunError):
    """A run request violates a precondition the user can correct."""


class ContentionError(VMRunError):
    """Another process won the race for the VM directory lock."""


class ConfigError(VMRunError):
    """The VM config file is missing or cannot be parsed."""


class ConstructionError(VMRunError):
    """The machine factory could not build a runnable machine."""


class LifecycleError(VMRunError):
    """Starting or stopping the underlying machine failed."""


class SpawnError(VMRunError):
    """The detached child process could not be launched."""
