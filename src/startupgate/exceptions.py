"""Module: startupgate.exceptions

Purpose: Error taxonomy for the startup coordination protocol.

Key Components:
- StartupGateError: Base class, caught by management commands
- StartupTimeoutError / StartupCancelledError: Blocking call did not complete
- StartupInitError: Init routine failed inside the gate (fatal)
- ReadinessUnavailableError: Readiness store unreachable (fatal)
- CommandFailedError: Required command exited non-zero
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from startupgate.commands import CommandResult


class StartupGateError(Exception):
    """Base exception for startupgate errors."""

    pass


class StartupTimeoutError(StartupGateError):
    """Raised when lock acquisition or a readiness wait times out."""

    pass


class StartupCancelledError(StartupGateError):
    """Raised when a cancel token is set while blocked on a lock or wait."""

    pass


class StartupInitError(StartupGateError):
    """Raised when the initialization routine fails inside the gate."""

    pass


class ReadinessUnavailableError(StartupGateError):
    """Raised when the readiness store cannot be reached."""

    pass


class CommandFailedError(StartupGateError):
    """Raised when a required command set exits non-zero."""

    def __init__(self, message: str, result: CommandResult | None = None) -> None:
        super().__init__(message)
        self.result = result
