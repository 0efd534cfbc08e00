"""Management command: startup

Purpose: Run coordinated startup for one server instance.

Related:
- startupgate.sequencer.StartupSequencer: Core implementation
- entrypoint.sh: Calls this command on every instance
"""

from __future__ import annotations

import sys

from django.core.management.base import BaseCommand

from startupgate.exceptions import StartupGateError
from startupgate.sequencer import ServerInstance, StartupSequencer


class Command(BaseCommand):
    """Provision, initialise (once per database) and launch a server instance.

    Key Behaviors:
    - Waits for database, takes the database lock, runs init if first
    - Followers wait until the database is fully initialised
    - Launches the server and, on the initializer, publishes readiness
    """

    help = 'Run coordinated startup for one server instance'

    def add_arguments(self, parser) -> None:
        parser.add_argument('--instance-id', required=True, help='Server instance identity')
        parser.add_argument('--host', required=True, help='Host identity (for the install lock)')
        parser.add_argument('--database', required=True, help='Database resource id')
        parser.add_argument('--broker', default=None, help='Broker resource id')
        parser.add_argument('--app-id', default='default', help='Application id for metadata')
        parser.add_argument('--display-name', default=None, help='Display name for metadata')
        parser.add_argument(
            '--timeout',
            type=float,
            default=None,
            help='Lock/wait timeout in seconds (defaults to STARTUPGATE_WAIT_TIMEOUT_SEC, or wait forever)',
        )

    def handle(self, *args, **options) -> None:
        instance = ServerInstance(
            instance_id=options['instance_id'],
            host_id=options['host'],
            database=options['database'],
            broker=options.get('broker'),
            app_id=options.get('app_id') or 'default',
            display_name=options.get('display_name'),
        )
        kwargs = {}
        if options.get('timeout') is not None:
            kwargs['wait_timeout'] = options['timeout']

        self.stdout.write(f'startup: starting (instance={instance.instance_id}, database={instance.database})')

        try:
            role = StartupSequencer(**kwargs).start(instance)
            self.stdout.write(self.style.SUCCESS(f'startup: completed (role={role.value})'))
        except StartupGateError as e:
            self.stderr.write(self.style.ERROR(f'startup: FAILED - {e}'))
            sys.exit(1)
