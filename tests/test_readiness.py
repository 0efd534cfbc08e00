import threading

import pytest
from django.test import override_settings

from startupgate import readiness
from startupgate.exceptions import (
    ReadinessUnavailableError,
    StartupCancelledError,
    StartupTimeoutError,
)


def test_attribute_key_uses_prefix():
    with override_settings(STARTUPGATE_KEY_PREFIX='og'):
        assert readiness.attribute_key('db-1', 'initialized') == 'og:db-1:initialized'


def test_set_get_clear():
    assert readiness.get_attribute('db-1', readiness.INITIALIZED) is None
    assert not readiness.is_set('db-1', readiness.INITIALIZED)

    readiness.set_attribute('db-1', readiness.INITIALIZED, True)
    assert readiness.is_set('db-1', readiness.INITIALIZED)
    assert not readiness.is_set('db-2', readiness.INITIALIZED)

    readiness.clear_attribute('db-1', readiness.INITIALIZED)
    assert readiness.get_attribute('db-1', readiness.INITIALIZED, 'missing') == 'missing'


def test_wait_until_returns_immediately_when_set():
    readiness.set_attribute('db-1', readiness.SERVICE_UP, True)
    assert readiness.wait_until('db-1', readiness.SERVICE_UP, True, timeout=0) is True


def test_wait_until_unblocks_when_set_from_another_thread():
    timer = threading.Timer(0.05, readiness.set_attribute, ('db-1', readiness.FULLY_INITIALIZED, True))
    timer.start()
    try:
        value = readiness.wait_until('db-1', readiness.FULLY_INITIALIZED, True, timeout=5)
    finally:
        timer.cancel()
    assert value is True


def test_wait_until_ignores_non_matching_values():
    readiness.set_attribute('db-1', readiness.INITIALIZED, False)
    with pytest.raises(StartupTimeoutError):
        readiness.wait_until('db-1', readiness.INITIALIZED, True, timeout=0.05)


def test_wait_until_custom_predicate():
    readiness.set_attribute('mq-1', readiness.PORT, 61616)
    value = readiness.wait_until('mq-1', readiness.PORT, predicate=lambda v: v is not None and v > 1024, timeout=0)
    assert value == 61616


def test_wait_until_uses_configured_timeout():
    with override_settings(STARTUPGATE_WAIT_TIMEOUT_SEC=0.05):
        with pytest.raises(StartupTimeoutError):
            readiness.wait_until('db-1', readiness.SERVICE_UP)


def test_wait_until_cancelled():
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        with pytest.raises(StartupCancelledError):
            readiness.wait_until('db-1', readiness.SERVICE_UP, timeout=None, cancel=cancel, poll_interval=10)
    finally:
        timer.cancel()


def test_wait_until_unreachable_store(monkeypatch):
    def broken(resource_id, key, default=None):
        raise ConnectionError('cache down')

    monkeypatch.setattr(readiness, 'get_attribute', broken)
    with override_settings(STARTUPGATE_UNREACHABLE_AFTER=3):
        with pytest.raises(ReadinessUnavailableError):
            readiness.wait_until('db-1', readiness.SERVICE_UP, timeout=None)


def test_wait_until_tolerates_transient_errors(monkeypatch):
    real_get = readiness.get_attribute
    failures = iter([True, True])

    def flaky(resource_id, key, default=None):
        if next(failures, False):
            raise ConnectionError('blip')
        return real_get(resource_id, key, default)

    readiness.set_attribute('db-1', readiness.SERVICE_UP, True)
    monkeypatch.setattr(readiness, 'get_attribute', flaky)
    with override_settings(STARTUPGATE_UNREACHABLE_AFTER=3):
        assert readiness.wait_until('db-1', readiness.SERVICE_UP, timeout=1) is True


def test_wait_for_value_skips_empty_values():
    readiness.set_attribute('db-1', readiness.ADDRESS, '')
    with pytest.raises(StartupTimeoutError):
        readiness.wait_for_value('db-1', readiness.ADDRESS, timeout=0.05)

    readiness.set_attribute('db-1', readiness.ADDRESS, '10.0.0.5')
    assert readiness.wait_for_value('db-1', readiness.ADDRESS, timeout=0) == '10.0.0.5'


def test_resolve_location():
    readiness.set_attribute('db-1', readiness.ADDRESS, '10.0.0.5')
    readiness.set_attribute('db-1', readiness.PORT, 5432)
    assert readiness.resolve_location('db-1', timeout=0) == '10.0.0.5:5432'

    readiness.set_attribute('db-2', readiness.ADDRESS, 'fe80::1')
    readiness.set_attribute('db-2', readiness.PORT, 5432)
    assert readiness.resolve_location('db-2', timeout=0) == '[fe80::1]:5432'
