"""Module: startupgate.mixins

Purpose: Mixin for Django AppConfig to register startup hooks.

Key Components:
- StartupGateMixin: Mixin class providing handle_database_init and handle_instance_customize hooks
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from startupgate.sequencer import ServerInstance


class StartupGateMixin:
    """Mixin for AppConfig to participate in coordinated startup.

    Purpose: Provide hook interface for apps to add database init and per-instance steps.

    Key Behaviors:
    - handle_database_init: Called by the single initializer, inside the database lock
    - handle_instance_customize: Called on every instance after the gate
    - Hooks are called in INSTALLED_APPS order

    Related:
    - sequencer.StartupSequencer: Calls both hooks
    """

    def handle_database_init(self, instance: ServerInstance) -> None:
        """Execute one-time database initialization for this app.

        Key Behaviors:
        - Runs at most once successfully per database
        - Failures are fatal (raise to abort startup; another instance may retry)

        Override this method in your AppConfig to add database init logic.
        """
        pass

    def handle_instance_customize(self, instance: ServerInstance) -> None:
        """Execute per-instance customization for this app.

        Key Behaviors:
        - Runs on every instance, initializer or follower
        - Non-fatal (logged and skipped)

        Override this method in your AppConfig to add customization logic.
        """
        pass
