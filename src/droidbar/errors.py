"""Error types for command execution."""

from __future__ import annotations


class DroidbarError(Exception):
    """Base error for droidbar."""


class RunError(DroidbarError):
    """A command or watch session could not be carried out."""


class SpawnError(RunError):
    """The child process could not be created."""

    def __init__(self, message: str, command: str = "", cwd: str | None = None) -> None:
        super().__init__(message)
        self.command = command
        self.cwd = cwd


def non_zero_exit_message(exit_code: int) -> str:
    """Diagnostic line for a child that exited with a failure status."""
    return f"Command failed with status: {exit_code}"
