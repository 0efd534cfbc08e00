"""Management command: ensure_runtime

Purpose: Check for the required runtime on this host and install it if needed.

Related:
- startupgate.provisioning.BoundedRetryProvisioner: Core implementation
"""

from __future__ import annotations

import socket
import sys

from django.core.management.base import BaseCommand

from startupgate import conf
from startupgate.commands import LocalCommandRunner
from startupgate.exceptions import StartupGateError
from startupgate.provisioning import BoundedRetryProvisioner, runtime_install, runtime_probe


class Command(BaseCommand):
    """Run the runtime provisioner under the host install lock."""

    help = 'Ensure the required runtime is installed on this host'

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            '--host',
            default=None,
            help='Host identity for the install lock (defaults to the hostname)',
        )

    def handle(self, *args, **options) -> None:
        host_id = options.get('host') or socket.gethostname()
        install_commands = conf.get_runtime_install_commands()
        if not install_commands:
            self.stderr.write(self.style.ERROR('ensure_runtime: STARTUPGATE_RUNTIME_INSTALL_COMMANDS is empty'))
            sys.exit(1)

        runner = LocalCommandRunner()
        try:
            outcome = BoundedRetryProvisioner(host_id).ensure(
                runtime_probe(
                    runner,
                    host_id,
                    conf.get_runtime_check_commands(),
                    conf.get_runtime_version_commands(),
                ),
                runtime_install(runner, host_id, install_commands),
            )
        except StartupGateError as e:
            self.stderr.write(self.style.ERROR(f'ensure_runtime: FAILED - {e}'))
            sys.exit(1)

        if not outcome.ok:
            self.stderr.write(self.style.ERROR(f'ensure_runtime: FAILED - runtime not installed on {host_id}'))
            sys.exit(1)
        self.stdout.write(self.style.SUCCESS(f'ensure_runtime: {outcome.value} (host={host_id})'))
