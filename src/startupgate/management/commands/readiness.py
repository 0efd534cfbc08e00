"""Management command: readiness

Purpose: Diagnostic command to inspect and manage readiness attributes.

Related:
- startupgate.readiness: Attribute storage
"""

from __future__ import annotations

import sys

from django.core.management.base import BaseCommand

from startupgate import readiness
from startupgate.exceptions import StartupGateError


class Command(BaseCommand):
    """Check, set, clear or wait for a readiness attribute of a resource."""

    help = 'Manage readiness attributes (check/set/clear/wait)'

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            'action',
            choices=['check', 'set', 'clear', 'wait'],
            help='Action to perform on the attribute',
        )
        parser.add_argument('resource_id', help='Shared resource id')
        parser.add_argument(
            '--key',
            default=readiness.FULLY_INITIALIZED,
            help=f'Attribute name (default: {readiness.FULLY_INITIALIZED})',
        )
        parser.add_argument(
            '--timeout',
            type=float,
            default=None,
            help='Wait timeout in seconds (defaults to STARTUPGATE_WAIT_TIMEOUT_SEC)',
        )

    def handle(self, *args, **options) -> None:
        action = options['action']
        resource_id = options['resource_id']
        key = options['key']

        if action == 'check':
            status = 'READY' if readiness.is_set(resource_id, key) else 'NOT READY'
            self.stdout.write(f'{key} (resource={resource_id}): {status}')

        elif action == 'set':
            readiness.set_attribute(resource_id, key, True)
            self.stdout.write(self.style.SUCCESS(f'{key} SET (resource={resource_id})'))

        elif action == 'clear':
            readiness.clear_attribute(resource_id, key)
            self.stdout.write(self.style.WARNING(f'{key} CLEARED (resource={resource_id})'))

        elif action == 'wait':
            kwargs = {}
            if options.get('timeout') is not None:
                kwargs['timeout'] = options['timeout']
            try:
                readiness.wait_until(resource_id, key, True, **kwargs)
            except StartupGateError as e:
                self.stderr.write(self.style.ERROR(f'{key} wait FAILED - {e}'))
                sys.exit(1)
            self.stdout.write(self.style.SUCCESS(f'{key} READY (resource={resource_id})'))
