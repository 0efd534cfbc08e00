"""Module: startupgate.sequencer

Purpose: Per-instance startup ordering around the initialization gate.

Key Components:
- ServerInstance: Identity and dependencies of one server instance
- StartupSequencer: provision -> customize (gate) -> launch (publish)

Architecture:
customize() waits for the database to be up, runs the gate (the single
initializer runs init commands and database hooks) and then the soft
auxiliary steps. launch() waits for the broker, makes followers wait for
FULLY_INITIALIZED, starts the server and, on the initializer only,
publishes FULLY_INITIALIZED after the settle delay. The Role returned by
customize() is passed to launch() explicitly.

Related Modules:
- startupgate.gate: Exactly-once init
- startupgate.readiness: Dependency and readiness waits
- startupgate.provisioning: Runtime install
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.apps import apps

from startupgate import conf, readiness
from startupgate.commands import CommandRunner, LocalCommandRunner, require_success
from startupgate.exceptions import StartupCancelledError
from startupgate.gate import InitializationGate, Role
from startupgate.metadata import StatsRecorder
from startupgate.mixins import StartupGateMixin
from startupgate.provisioning import (
    BoundedRetryProvisioner,
    ProvisionOutcome,
    runtime_install,
    runtime_probe,
)

if TYPE_CHECKING:
    from django.apps import AppConfig

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class ServerInstance:
    """One server instance and the shared resources it depends on."""

    instance_id: str
    host_id: str
    database: str
    broker: str | None = None
    app_id: str = 'default'
    display_name: str | None = None


def _get_apps_with_mixin() -> list[AppConfig]:
    """Get all app configs that implement StartupGateMixin in INSTALLED_APPS order."""
    return [app_config for app_config in apps.get_app_configs() if isinstance(app_config, StartupGateMixin)]


class StartupSequencer:
    """Drive one instance through coordinated startup.

    Example:
        sequencer = StartupSequencer()
        role = sequencer.start(ServerInstance('og-1', 'host-a', 'db-1', broker='mq-1'))
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        gate: InitializationGate | None = None,
        *,
        settle_delay: float | None = None,
        wait_timeout: float | None | object = _UNSET,
        poll_interval: float | None = None,
        retry_delay: float | None = None,
        stats: StatsRecorder | None = None,
    ) -> None:
        self.runner = runner or LocalCommandRunner()
        self.gate = gate or InitializationGate()
        self.settle_delay = settle_delay if settle_delay is not None else conf.get_settle_delay()
        self.wait_timeout = conf.get_wait_timeout() if wait_timeout is _UNSET else wait_timeout
        self.poll_interval = poll_interval
        self.retry_delay = retry_delay
        if stats is None and conf.get_stats_address() is not None:
            stats = StatsRecorder(conf.get_stats_address(), conf.get_stats_prefix())
        self.stats = stats

    def start(self, instance: ServerInstance, *, cancel: threading.Event | None = None) -> Role:
        """Provision, customize and launch an instance. Returns its role."""
        cancel = cancel or threading.Event()
        logger.info('startupgate: starting instance', extra={'instance_id': instance.instance_id})
        self.provision(instance, cancel=cancel)
        role = self.customize(instance, cancel=cancel)
        self.launch(instance, role, cancel=cancel)
        logger.info(
            'startupgate: instance started',
            extra={'instance_id': instance.instance_id, 'role': role.value},
        )
        return role

    def provision(
        self, instance: ServerInstance, *, cancel: threading.Event | None = None
    ) -> ProvisionOutcome | None:
        """Ensure the runtime is installed. Returns None when provisioning is not configured."""
        install_commands = conf.get_runtime_install_commands()
        if not install_commands:
            return None
        provisioner = BoundedRetryProvisioner(instance.host_id, retry_delay=self.retry_delay)
        outcome = provisioner.ensure(
            runtime_probe(
                self.runner,
                instance.host_id,
                conf.get_runtime_check_commands(),
                conf.get_runtime_version_commands(),
            ),
            runtime_install(self.runner, instance.host_id, install_commands),
            cancel=cancel,
        )
        if not outcome.ok:
            logger.warning(
                'startupgate: runtime provisioning failed, continuing',
                extra={'instance_id': instance.instance_id, 'host_id': instance.host_id},
            )
        return outcome

    def _wait(self, resource_id: str, key: str, cancel: threading.Event) -> None:
        readiness.wait_until(
            resource_id,
            key,
            True,
            timeout=self.wait_timeout,
            cancel=cancel,
            poll_interval=self.poll_interval,
        )

    def _init_database(self, instance: ServerInstance) -> None:
        init_commands = conf.get_init_commands()
        if init_commands:
            require_success(self.runner.run(instance.host_id, init_commands), 'database init')
        for app_config in _get_apps_with_mixin():
            logger.info('startupgate: running database init hook', extra={'app': app_config.name})
            app_config.handle_database_init(instance)

    def customize(self, instance: ServerInstance, *, cancel: threading.Event | None = None) -> Role:
        """Wait for the database, pass the gate, then run auxiliary steps."""
        cancel = cancel or threading.Event()
        logger.info('startupgate: waiting for database', extra={'resource_id': instance.database})
        self._wait(instance.database, readiness.SERVICE_UP, cancel)

        role = self.gate.run(
            instance.database,
            lambda: self._init_database(instance),
            timeout=self.wait_timeout,
            cancel=cancel,
        )
        self._run_auxiliary(instance)
        return role

    def _run_auxiliary(self, instance: ServerInstance) -> None:
        if self.stats is not None:
            try:
                display_name = instance.display_name or instance.app_id
                self.stats.record_app(instance.app_id, display_name)
                self.stats.record_instance(instance.app_id, instance.instance_id, 'DisplayName', display_name)
                self.stats.record_instance(instance.app_id, instance.instance_id, 'IP', instance.host_id)
            except Exception as e:
                logger.warning(
                    'startupgate: unable to record metadata',
                    extra={'instance_id': instance.instance_id, 'error': str(e)},
                )

        for app_config in _get_apps_with_mixin():
            try:
                app_config.handle_instance_customize(instance)
            except Exception as e:
                logger.warning(
                    'startupgate: customize hook failed (non-fatal)',
                    extra={'app': app_config.name, 'error': str(e)},
                )

    def wait_for_database_ready(self, instance: ServerInstance, *, cancel: threading.Event | None = None) -> None:
        """Block a follower until the database is fully initialised."""
        if readiness.is_set(instance.database, readiness.FULLY_INITIALIZED):
            logger.debug(
                'startupgate: not initial, but database already up, continuing',
                extra={'instance_id': instance.instance_id},
            )
            return
        logger.info(
            'startupgate: not initial, waiting on database to be fully initialised',
            extra={'instance_id': instance.instance_id},
        )
        self._wait(instance.database, readiness.FULLY_INITIALIZED, cancel or threading.Event())
        logger.debug('startupgate: database fully initialised, continuing', extra={'instance_id': instance.instance_id})

    def launch_environment(
        self, instance: ServerInstance, *, cancel: threading.Event | None = None
    ) -> dict[str, str]:
        if not conf.get_resolve_locations():
            return {}
        kwargs = {'timeout': self.wait_timeout, 'poll_interval': self.poll_interval, 'cancel': cancel}
        env = {'STARTUPGATE_DATABASE_LOCATION': readiness.resolve_location(instance.database, **kwargs)}
        if instance.broker is not None:
            env['STARTUPGATE_BROKER_LOCATION'] = readiness.resolve_location(instance.broker, **kwargs)
        return env

    def launch(self, instance: ServerInstance, role: Role, *, cancel: threading.Event | None = None) -> None:
        """Start the server, then publish readiness if this instance is the initializer."""
        cancel = cancel or threading.Event()
        if instance.broker is not None:
            logger.info('startupgate: waiting for broker', extra={'resource_id': instance.broker})
            self._wait(instance.broker, readiness.SERVICE_UP, cancel)

        if role is Role.FOLLOWER:
            self.wait_for_database_ready(instance, cancel=cancel)

        launch_commands = conf.get_launch_commands()
        if launch_commands:
            env = self.launch_environment(instance, cancel=cancel)
            require_success(self.runner.run(instance.host_id, launch_commands, env=env), 'launch')

        if role is Role.INITIALIZER:
            logger.info(
                'startupgate: initializer launched, will mark database fully initialised',
                extra={'instance_id': instance.instance_id, 'settle_delay': self.settle_delay},
            )
            if cancel.wait(self.settle_delay):
                raise StartupCancelledError(f'Cancelled during settle delay of {instance.instance_id}')
            readiness.set_attribute(instance.database, readiness.FULLY_INITIALIZED, True)
