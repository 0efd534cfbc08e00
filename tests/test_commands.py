from io import StringIO

import pytest
from django.core.management import call_command
from django.test import override_settings

from startupgate import readiness
from startupgate.commands import CommandResult, LocalCommandRunner, require_success
from startupgate.exceptions import CommandFailedError


def test_local_runner_captures_output():
    result = LocalCommandRunner().run('local', ['echo hello', 'echo oops 1>&2'])

    assert result.ok
    assert result.stdout == 'hello\n'
    assert result.stderr == 'oops\n'


def test_local_runner_stops_at_first_failure():
    result = LocalCommandRunner().run('local', ['exit 3', 'echo unreachable'])

    assert result.exit_code == 3
    assert result.stdout == ''


def test_local_runner_passes_environment():
    result = LocalCommandRunner().run('local', ['echo $STARTUPGATE_DATABASE_LOCATION'], env={'STARTUPGATE_DATABASE_LOCATION': 'db:5432'})
    assert result.stdout == 'db:5432\n'


def test_require_success():
    ok = CommandResult(0)
    assert require_success(ok, 'launch') is ok

    with pytest.raises(CommandFailedError) as excinfo:
        require_success(CommandResult(1, '', 'no such file\n'), 'launch')
    assert excinfo.value.result.exit_code == 1
    assert 'no such file' in str(excinfo.value)


def test_readiness_command_set_check_clear():
    out = StringIO()
    call_command('readiness', 'check', 'db-1', stdout=out)
    assert 'NOT READY' in out.getvalue()

    call_command('readiness', 'set', 'db-1', stdout=StringIO())
    assert readiness.is_set('db-1', readiness.FULLY_INITIALIZED)

    out = StringIO()
    call_command('readiness', 'check', 'db-1', stdout=out)
    assert 'fully_initialized (resource=db-1): READY' in out.getvalue()

    call_command('readiness', 'clear', 'db-1', stdout=StringIO())
    assert not readiness.is_set('db-1', readiness.FULLY_INITIALIZED)


def test_readiness_command_wait():
    readiness.set_attribute('db-1', readiness.SERVICE_UP, True)
    out = StringIO()
    call_command('readiness', 'wait', 'db-1', '--key', readiness.SERVICE_UP, '--timeout', '1', stdout=out)
    assert 'READY' in out.getvalue()

    with pytest.raises(SystemExit):
        call_command('readiness', 'wait', 'db-2', '--timeout', '0.05', stdout=StringIO(), stderr=StringIO())


def test_startup_command_initializes():
    readiness.set_attribute('db-1', readiness.SERVICE_UP, True)
    out = StringIO()

    call_command('startup', '--instance-id', 'og-1', '--host', 'host-a', '--database', 'db-1', stdout=out)

    assert 'role=initializer' in out.getvalue()
    assert readiness.is_set('db-1', readiness.FULLY_INITIALIZED)


def test_startup_command_fails_on_timeout():
    err = StringIO()
    with pytest.raises(SystemExit) as excinfo:
        call_command(
            'startup', '--instance-id', 'og-1', '--host', 'host-a', '--database', 'db-1',
            '--timeout', '0.05', stdout=StringIO(), stderr=err,
        )
    assert excinfo.value.code == 1
    assert 'FAILED' in err.getvalue()


def test_ensure_runtime_command_satisfied():
    with override_settings(
        STARTUPGATE_RUNTIME_CHECK_COMMANDS=['true'],
        STARTUPGATE_RUNTIME_VERSION_COMMANDS=['echo \'java version "1.7.0_51"\' 1>&2'],
        STARTUPGATE_RUNTIME_INSTALL_COMMANDS=['false'],
    ):
        out = StringIO()
        call_command('ensure_runtime', '--host', 'host-a', stdout=out)
    assert 'satisfied' in out.getvalue()


def test_ensure_runtime_command_failed_install():
    with override_settings(
        STARTUPGATE_RUNTIME_CHECK_COMMANDS=['false'],
        STARTUPGATE_RUNTIME_INSTALL_COMMANDS=['false'],
    ):
        with pytest.raises(SystemExit):
            call_command('ensure_runtime', '--host', 'host-a', stdout=StringIO(), stderr=StringIO())
