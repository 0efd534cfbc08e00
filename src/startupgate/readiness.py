"""Module: startupgate.readiness

Purpose: Per-resource readiness attributes with blocking reads.

Key Components:
- key names: SERVICE_UP, ADDRESS, PORT, INITIALIZED, FULLY_INITIALIZED
- set_attribute / get_attribute / clear_attribute: Non-blocking access
- wait_until: Block until an attribute satisfies a predicate
- wait_for_value / resolve_location: Dependency resolution helpers

Architecture:
Attributes are stored in the Django cache (Redis recommended when
instances live on different hosts). Waits poll the cache and sleep on the
caller's cancel token between polls, so a cancel wakes the wait at once.
No timeout applies unless one is passed or STARTUPGATE_WAIT_TIMEOUT_SEC
is set.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from startupgate import conf
from startupgate.exceptions import (
    ReadinessUnavailableError,
    StartupCancelledError,
    StartupTimeoutError,
)

logger = logging.getLogger(__name__)

SERVICE_UP = 'service_up'
ADDRESS = 'address'
PORT = 'port'
INITIALIZED = 'initialized'
FULLY_INITIALIZED = 'fully_initialized'

_UNSET = object()


def _get_cache():
    from django.core.cache import caches

    return caches[conf.get_cache_alias()]


def attribute_key(resource_id: str, key: str) -> str:
    """Build cache key for a resource attribute."""
    return f'{conf.get_key_prefix()}:{resource_id}:{key}'


def set_attribute(resource_id: str, key: str, value: Any) -> None:
    """Publish an attribute value.

    Does not enforce monotonicity; callers needing set-once semantics must
    check before setting while holding the resource lock.
    """
    _get_cache().set(attribute_key(resource_id, key), value, timeout=conf.get_readiness_ttl())
    logger.info('startupgate: set attribute', extra={'resource_id': resource_id, 'key': key, 'value': value})


def get_attribute(resource_id: str, key: str, default: Any = None) -> Any:
    return _get_cache().get(attribute_key(resource_id, key), default)


def clear_attribute(resource_id: str, key: str) -> None:
    """Remove an attribute (manual intervention and tests only)."""
    _get_cache().delete(attribute_key(resource_id, key))
    logger.info('startupgate: cleared attribute', extra={'resource_id': resource_id, 'key': key})


def is_set(resource_id: str, key: str) -> bool:
    """Check whether a boolean attribute is exactly True."""
    return get_attribute(resource_id, key) is True


def wait_until(
    resource_id: str,
    key: str,
    expected: Any = True,
    *,
    predicate: Callable[[Any], bool] | None = None,
    timeout: float | None | object = _UNSET,
    cancel: threading.Event | None = None,
    poll_interval: float | None = None,
) -> Any:
    """Block until an attribute satisfies a predicate and return its value.

    Args:
        resource_id: Resource owning the attribute
        key: Attribute name
        expected: Value to wait for (ignored when predicate is given)
        predicate: Custom satisfaction test
        timeout: Maximum seconds to wait (defaults to STARTUPGATE_WAIT_TIMEOUT_SEC,
            None waits forever)
        cancel: Token that interrupts the wait when set
        poll_interval: Seconds between polls (defaults to STARTUPGATE_POLL_INTERVAL_SEC)

    Raises:
        StartupTimeoutError: If timeout exceeded
        StartupCancelledError: If cancel was set while waiting
        ReadinessUnavailableError: If the cache failed on too many consecutive polls
    """
    if timeout is _UNSET:
        timeout = conf.get_wait_timeout()
    if poll_interval is None:
        poll_interval = conf.get_poll_interval()
    if predicate is None:
        predicate = lambda value: value == expected  # noqa: E731
    cancel = cancel or threading.Event()
    unreachable_after = conf.get_unreachable_after()
    failures = 0
    start = time.monotonic()

    while True:
        if cancel.is_set():
            raise StartupCancelledError(f'Cancelled while waiting for {key} on {resource_id}')

        try:
            value = get_attribute(resource_id, key)
        except Exception as e:
            failures += 1
            logger.debug(
                'startupgate: readiness poll failed',
                extra={'resource_id': resource_id, 'key': key, 'failures': failures, 'error': str(e)},
            )
            if failures >= unreachable_after:
                raise ReadinessUnavailableError(
                    f'Readiness store unreachable while waiting for {key} on {resource_id}: {e}'
                ) from e
        else:
            failures = 0
            if predicate(value):
                return value

        elapsed = time.monotonic() - start
        if timeout is not None and elapsed > timeout:
            raise StartupTimeoutError(
                f'Timeout waiting for {key} on {resource_id} (timeout={timeout}s)'
            )
        logger.debug('startupgate: waiting for attribute', extra={'resource_id': resource_id, 'key': key, 'elapsed': elapsed})
        cancel.wait(poll_interval)


def wait_for_value(resource_id: str, key: str, **kwargs: Any) -> Any:
    """Wait until an attribute holds any non-empty value and return it."""
    return wait_until(
        resource_id,
        key,
        predicate=lambda value: value is not None and value is not False and value != '',
        **kwargs,
    )


def resolve_location(resource_id: str, **kwargs: Any) -> str:
    """Wait for a resource's address and port and return 'host:port'."""
    address = wait_for_value(resource_id, ADDRESS, **kwargs)
    port = wait_for_value(resource_id, PORT, **kwargs)
    if ':' in str(address):
        return f'[{address}]:{port}'
    return f'{address}:{port}'
