"""Module: startupgate.provisioning

Purpose: Ensure a runtime capability is present on a host, with one bounded retry.

Key Components:
- extract_version_token: Loose version scan over probe output
- install_required: Prefix decision table
- BoundedRetryProvisioner: Host-locked check-and-install
- runtime_probe: Probe built from a CommandRunner

Architecture:
The host lock keeps colocated instances from installing concurrently.
Install failure is a soft failure: after the retries are exhausted the
provisioner logs an error and returns ProvisionOutcome.FAILED so the step
that actually needs the runtime reports the real problem.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable, Sequence

from startupgate import conf
from startupgate.commands import CommandRunner, require_success
from startupgate.exceptions import StartupCancelledError
from startupgate.locks import HostLock

logger = logging.getLogger(__name__)

VERSION_EXTRA_CHARS = '"\'_-.'
SATISFIED_PREFIXES = ('1.7',)
OUTDATED_PREFIXES = ('1.6', '1.5', '1.4')

Probe = Callable[[], 'str | None']
Install = Callable[[], int]


class ProvisionOutcome(enum.Enum):
    SATISFIED = 'satisfied'
    INSTALLED = 'installed'
    FAILED = 'failed'

    @property
    def ok(self) -> bool:
        return self is not ProvisionOutcome.FAILED


def extract_version_token(output: str) -> str | None:
    """Extract the version substring from probe output.

    Starts at the first digit and consumes digits and the characters
    " ' _ - . that follow; stops at anything else (so a space ends the
    token but a trailing quote is kept).

    Returns:
        The token, or None when the output contains no digit
    """
    start = 0
    while start < len(output) and not output[start].isdigit():
        start += 1
    if start >= len(output):
        return None
    end = start + 1
    while end < len(output) and (output[end].isdigit() or output[end] in VERSION_EXTRA_CHARS):
        end += 1
    return output[start:end]


def install_required(token: str) -> bool:
    """Decide from a version token whether to install.

    Only known-old versions trigger an install; unrecognised or newer
    versions are left alone.
    """
    if token.startswith(SATISFIED_PREFIXES):
        return False
    return token.startswith(OUTDATED_PREFIXES)


class BoundedRetryProvisioner:
    """Check-and-install a runtime capability under a host lock."""

    def __init__(
        self,
        host_id: str,
        *,
        retry_delay: float | None = None,
        max_retries: int | None = None,
        lock: HostLock | None = None,
    ) -> None:
        self.host_id = host_id
        self.retry_delay = retry_delay if retry_delay is not None else conf.get_retry_delay()
        self.max_retries = max_retries if max_retries is not None else conf.get_max_retries()
        self.lock = lock or HostLock()

    def needs_install(self, probe: Probe) -> bool:
        output = probe()
        if output is None:
            logger.debug('startupgate: runtime not detected, installing', extra={'host_id': self.host_id})
            return True

        token = extract_version_token(output)
        if token is None:
            logger.warning(
                'startupgate: cannot parse runtime version, assuming satisfied',
                extra={'host_id': self.host_id, 'output': output},
            )
            return False

        logger.debug('startupgate: runtime version detected', extra={'host_id': self.host_id, 'version': token})
        if install_required(token):
            logger.debug('startupgate: old runtime version, installing', extra={'host_id': self.host_id, 'version': token})
            return True
        if not token.startswith(SATISFIED_PREFIXES):
            logger.debug(
                'startupgate: unrecognised or newer runtime version, not installing',
                extra={'host_id': self.host_id, 'version': token},
            )
        return False

    def ensure(
        self,
        probe: Probe,
        install: Install,
        *,
        cancel: threading.Event | None = None,
    ) -> ProvisionOutcome:
        """Probe for the capability and install it if required.

        Args:
            probe: Returns version output, or None when the capability is absent
            install: Runs the install, returning its exit status
            cancel: Token that interrupts the host lock wait and the retry delay

        Returns:
            SATISFIED, INSTALLED, or FAILED after all attempts

        Raises:
            StartupCancelledError: If cancel was set while waiting
        """
        cancel = cancel or threading.Event()
        with self.lock.held(self.host_id, f'installing runtime at {self.host_id}', cancel=cancel):
            if not self.needs_install(probe):
                return ProvisionOutcome.SATISFIED

            attempts = 1 + self.max_retries
            for attempt in range(1, attempts + 1):
                result = install()
                if result == 0:
                    if attempt > 1:
                        logger.info(
                            'startupgate: runtime installed after retry',
                            extra={'host_id': self.host_id, 'attempt': attempt},
                        )
                    return ProvisionOutcome.INSTALLED
                if attempt < attempts:
                    logger.warning(
                        'startupgate: runtime install failed, will retry',
                        extra={'host_id': self.host_id, 'attempt': attempt, 'exit_code': result},
                    )
                    if cancel.wait(self.retry_delay):
                        raise StartupCancelledError(f'Cancelled during runtime install retry delay at {self.host_id}')

            logger.error(
                'startupgate: unable to install runtime, processes may fail to start',
                extra={'host_id': self.host_id, 'attempts': attempts, 'exit_code': result},
            )
            return ProvisionOutcome.FAILED


def runtime_probe(
    runner: CommandRunner,
    host_id: str,
    check_commands: Sequence[str],
    version_commands: Sequence[str],
) -> Probe:
    """Build a probe: a failing check means absent, else stderr + stdout of the version command."""

    def probe() -> str | None:
        if not runner.run(host_id, check_commands).ok:
            return None
        result = require_success(runner.run(host_id, version_commands), 'runtime version check')
        return f'{result.stderr}\n{result.stdout}'

    return probe


def runtime_install(runner: CommandRunner, host_id: str, install_commands: Sequence[str]) -> Install:
    def install() -> int:
        return runner.run(host_id, install_commands).exit_code

    return install
