"""Module: startupgate.gate

Purpose: Exactly-once initialization of a shared resource among concurrent peers.

Key Components:
- Role: INITIALIZER or FOLLOWER, computed once per instance
- InitializationGate: ResourceLock + INITIALIZED attribute

Architecture:
The INITIALIZED attribute is checked only after the resource lock is held.
Mutual exclusion keeps two init routines from overlapping; the attribute,
written before the lock is released, keeps later peers from running it
again. A failed routine leaves the attribute unset so a later peer can
retry.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable
from typing import Any

from startupgate import readiness
from startupgate.exceptions import StartupCancelledError, StartupInitError
from startupgate.locks import ResourceLock

logger = logging.getLogger(__name__)


class Role(enum.Enum):
    INITIALIZER = 'initializer'
    FOLLOWER = 'follower'


class InitializationGate:
    """Run an init routine at most once (successfully) per resource id.

    Example:
        gate = InitializationGate()
        role = gate.run(database_id, run_init_script)
        if role is Role.INITIALIZER:
            ...
    """

    def __init__(self, lock: ResourceLock | None = None) -> None:
        self.lock = lock or ResourceLock()

    def run(
        self,
        resource_id: str,
        init_routine: Callable[[], Any],
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Role:
        """Acquire the resource lock and run init_routine unless already done.

        Args:
            resource_id: Shared resource identity (lock key and attribute owner)
            init_routine: One-time initialization callable
            timeout: Lock acquisition timeout (None waits forever)
            cancel: Token that interrupts the lock wait

        Returns:
            Role.INITIALIZER if this call ran the routine, Role.FOLLOWER otherwise

        Raises:
            StartupInitError: If init_routine fails (attribute stays unset)
            StartupCancelledError / StartupTimeoutError: From lock acquisition
        """
        with self.lock.held(resource_id, f'initialising {resource_id}', timeout=timeout, cancel=cancel):
            if readiness.is_set(resource_id, readiness.INITIALIZED):
                logger.info('startupgate: resource already initialised', extra={'resource_id': resource_id})
                return Role.FOLLOWER

            logger.info('startupgate: initialising resource', extra={'resource_id': resource_id})
            try:
                init_routine()
            except StartupCancelledError:
                raise
            except Exception as e:
                logger.exception('startupgate: initialisation failed', extra={'resource_id': resource_id})
                raise StartupInitError(f'Initialisation of {resource_id} failed: {e}') from e

            readiness.set_attribute(resource_id, readiness.INITIALIZED, True)
            logger.info('startupgate: resource initialised', extra={'resource_id': resource_id})
            return Role.INITIALIZER
