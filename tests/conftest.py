import tempfile

import django
import pytest
from django.conf import settings
from django.core.cache import caches
from django.test import override_settings


def pytest_configure(config):
    if settings.configured:
        return
    settings.configure(
        INSTALLED_APPS=['startupgate'],
        DATABASES={'default': {'ENGINE': 'django.db.backends.sqlite3', 'NAME': ':memory:'}},
        CACHES={'default': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache'}},
        STARTUPGATE_LOCK_BACKEND='file',
        STARTUPGATE_LOCK_DIR=tempfile.mkdtemp(prefix='startupgate-tests-'),
        STARTUPGATE_POLL_INTERVAL_SEC=0.01,
        STARTUPGATE_SETTLE_DELAY_SEC=0,
        STARTUPGATE_RETRY_DELAY_SEC=0,
    )
    django.setup()


@pytest.fixture(autouse=True)
def isolated_state(tmp_path):
    """Fresh lock directory and empty cache for every test."""
    caches['default'].clear()
    with override_settings(STARTUPGATE_LOCK_DIR=str(tmp_path / 'locks')):
        yield
    caches['default'].clear()


class FakeRunner:
    """CommandRunner double: scripted exit codes, optional delays, call log."""

    def __init__(self, results=None, delays=None):
        self.results = {key: list(value) for key, value in (results or {}).items()}
        self.delays = delays or {}
        self.calls = []

    def run(self, host_id, commands, *, env=None):
        import time

        from startupgate.commands import CommandResult

        script = ' && '.join(commands)
        self.calls.append((host_id, script, dict(env or {}), time.monotonic()))
        if script in self.delays:
            time.sleep(self.delays[script])
        scripted = self.results.get(script)
        if scripted:
            result = scripted.pop(0) if len(scripted) > 1 else scripted[0]
            if isinstance(result, CommandResult):
                return result
            return CommandResult(result)
        return CommandResult(0)

    def scripts(self, host_id=None):
        return [script for host, script, _, _ in self.calls if host_id is None or host == host_id]


@pytest.fixture
def fake_runner():
    return FakeRunner
