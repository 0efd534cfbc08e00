"""Module: startupgate.locks

Purpose: Keyed mutual exclusion across instances, and per host.

Key Components:
- AdvisoryLockBackend: PostgreSQL session advisory locks via django-pglock
- FileLockBackend: File locks via filelock (shared filesystem or single host)
- ResourceLock: Cluster-wide lock keyed by a shared resource id
- HostLock: Host-local lock domain for installation steps
- LockHandle: Ownership token for one critical section

Architecture:
Backends expose try_acquire(key, wait) which blocks for at most `wait`
seconds and returns a release callable (or None). ResourceLock acquires in
poll-sized slices so a cancel token or timeout can interrupt the wait
without ever leaving a lock behind. Crash recovery is left to the backend:
PostgreSQL drops advisory locks with the session, the OS drops file locks
with the process.

Related Modules:
- startupgate.gate: Uses ResourceLock around the init routine
- startupgate.provisioning: Uses HostLock around runtime install
"""

from __future__ import annotations

import contextlib
import datetime as dt
import hashlib
import logging
import re
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import pglock
from filelock import FileLock, Timeout

from startupgate import conf
from startupgate.exceptions import StartupCancelledError, StartupTimeoutError

logger = logging.getLogger(__name__)

ReleaseFn = Callable[[], None]


class LockBackend(Protocol):
    """Keyed lock primitive shared by every instance that must be excluded."""

    def try_acquire(self, key: str, wait: float) -> ReleaseFn | None:
        """Try to take `key`, blocking at most `wait` seconds."""
        ...


class AdvisoryLockBackend:
    """PostgreSQL session advisory lock backend.

    The lock lives in the database all instances share, so it is visible
    cluster-wide. Release must happen on the acquiring thread, since the
    lock belongs to that thread's connection.
    """

    def __init__(self, using: str | None = None) -> None:
        self.using = using or conf.get_database_alias()

    def try_acquire(self, key: str, wait: float) -> ReleaseFn | None:
        stack = contextlib.ExitStack()
        acquired = stack.enter_context(
            pglock.advisory(key, using=self.using, timeout=dt.timedelta(seconds=wait))
        )
        if not acquired:
            stack.close()
            return None
        return stack.close


class FileLockBackend:
    """File lock backend rooted at STARTUPGATE_LOCK_DIR."""

    def __init__(self, lock_dir: Path | None = None) -> None:
        self.lock_dir = lock_dir or conf.get_lock_dir()

    def lock_path(self, key: str) -> Path:
        """Build a filesystem-safe lock path for a key."""
        safe = re.sub(r'[^A-Za-z0-9_.-]', '_', key)[:64]
        digest = hashlib.md5(key.encode()).hexdigest()[:8]
        return self.lock_dir / f'{safe}-{digest}.lock'

    def try_acquire(self, key: str, wait: float) -> ReleaseFn | None:
        path = self.lock_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(path)
        try:
            lock.acquire(timeout=wait)
        except Timeout:
            return None
        return lock.release


def get_backend(name: str | None = None) -> LockBackend:
    """Build the configured lock backend."""
    name = name or conf.get_lock_backend()
    if name == 'advisory':
        return AdvisoryLockBackend()
    if name == 'file':
        return FileLockBackend()
    raise ValueError(f'Unknown lock backend: {name!r}')


@dataclass
class LockHandle:
    """Ownership token for one critical section. Never persisted."""

    key: str
    description: str
    acquired_at: float
    _release: ReleaseFn = field(repr=False)
    released: bool = False


class ResourceLock:
    """Cluster-wide mutex keyed by a shared resource id.

    Example:
        lock = ResourceLock()
        with lock.held(database_id, 'initialising database'):
            ...
    """

    def __init__(self, backend: LockBackend | None = None, poll_interval: float | None = None) -> None:
        self.backend = backend or get_backend()
        self.poll_interval = poll_interval if poll_interval is not None else conf.get_poll_interval()

    def _key(self, resource_id: str) -> str:
        return resource_id

    def acquire(
        self,
        resource_id: str,
        description: str,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> LockHandle:
        """Block until the lock for `resource_id` is held.

        Args:
            resource_id: Lock key (shared resource identity)
            description: Human-readable purpose, used in logs
            timeout: Maximum seconds to wait (None waits forever)
            cancel: Token that interrupts the wait when set

        Raises:
            StartupTimeoutError: If timeout exceeded
            StartupCancelledError: If cancel was set while waiting
        """
        key = self._key(resource_id)
        start = time.monotonic()
        logger.debug('startupgate: acquiring lock', extra={'lock_key': key, 'description': description})

        while True:
            if cancel is not None and cancel.is_set():
                raise StartupCancelledError(f'Cancelled while waiting for lock {key!r} ({description})')

            wait = self.poll_interval
            if timeout is not None:
                remaining = timeout - (time.monotonic() - start)
                if remaining <= 0:
                    raise StartupTimeoutError(
                        f'Lock acquisition timed out (lock={key!r}, timeout={timeout}s)'
                    )
                wait = min(wait, remaining)

            release = self.backend.try_acquire(key, wait)
            if release is not None:
                logger.debug('startupgate: lock acquired', extra={'lock_key': key, 'description': description})
                return LockHandle(key=key, description=description, acquired_at=time.monotonic(), _release=release)

            logger.debug(
                'startupgate: waiting for lock',
                extra={'lock_key': key, 'elapsed': time.monotonic() - start},
            )

    def release(self, handle: LockHandle) -> None:
        """Release a handle. Releasing twice is a no-op."""
        if handle.released:
            return
        handle.released = True
        handle._release()
        logger.debug('startupgate: lock released', extra={'lock_key': handle.key})

    @contextlib.contextmanager
    def held(
        self,
        resource_id: str,
        description: str,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[LockHandle]:
        """Hold the lock for the body of a with-block, releasing on every exit path."""
        handle = self.acquire(resource_id, description, timeout=timeout, cancel=cancel)
        try:
            yield handle
        finally:
            self.release(handle)


class HostLock(ResourceLock):
    """Host-local lock domain, keyed by host identity.

    Always file-based: it guards installation on one machine, not a
    cluster resource.
    """

    def __init__(self, backend: LockBackend | None = None, poll_interval: float | None = None) -> None:
        super().__init__(backend or FileLockBackend(), poll_interval)

    def _key(self, resource_id: str) -> str:
        return f'install:{resource_id}'
