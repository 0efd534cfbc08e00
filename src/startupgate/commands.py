"""Module: startupgate.commands

Purpose: Command-execution collaborator interface.

Key Components:
- CommandResult: Exit code plus captured output
- CommandRunner: run(host_id, commands) protocol
- LocalCommandRunner: Runs command sets through bash on this machine
- require_success: Raise CommandFailedError on a non-zero result
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from startupgate.exceptions import CommandFailedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner(Protocol):
    def run(
        self,
        host_id: str,
        commands: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        ...


class LocalCommandRunner:
    """Run a command set on the local host.

    Commands are joined with '&&' so the set stops at the first failure,
    and run through bash. host_id is only used for logging.
    """

    def __init__(self, shell: str = 'bash', cwd: str | None = None) -> None:
        self.shell = shell
        self.cwd = cwd

    def run(
        self,
        host_id: str,
        commands: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        script = ' && '.join(commands)
        logger.debug('startupgate: running commands', extra={'host_id': host_id, 'script': script})
        full_env = None
        if env:
            full_env = {**os.environ, **env}
        completed = subprocess.run(
            [self.shell, '-c', script],
            capture_output=True,
            text=True,
            env=full_env,
            cwd=self.cwd,
            check=False,
        )
        return CommandResult(completed.returncode, completed.stdout, completed.stderr)


def require_success(result: CommandResult, what: str) -> CommandResult:
    """Return result unchanged, or raise CommandFailedError when it failed."""
    if not result.ok:
        raise CommandFailedError(
            f'{what} failed with exit code {result.exit_code}: {result.stderr.strip()}',
            result,
        )
    return result
