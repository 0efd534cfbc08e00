"""Module: startupgate.apps

Purpose: Django app configuration for startupgate.

Key Components:
- StartupGateConfig: Django AppConfig for startupgate app
"""

from django.apps import AppConfig


class StartupGateConfig(AppConfig):
    """Django app configuration for startupgate.

    Design:
    No models - state lives in the lock backend and the cache. The app
    exists so the management commands are discovered.
    """

    name = 'startupgate'
    verbose_name = 'Startup Gate'
    default_auto_field = 'django.db.models.BigAutoField'
