"""Module: startupgate.conf

Purpose: Settings accessors with defaults.

All values are read lazily from django.conf.settings so tests can use
override_settings.
"""

from __future__ import annotations

from pathlib import Path

from django.conf import settings


def get_lock_backend() -> str:
    """Get lock backend name ('advisory' or 'file')."""
    return getattr(settings, 'STARTUPGATE_LOCK_BACKEND', 'advisory')


def get_lock_dir() -> Path:
    """Get directory for file locks."""
    return Path(getattr(settings, 'STARTUPGATE_LOCK_DIR', '/tmp/startupgate'))


def get_database_alias() -> str:
    """Get database alias used for advisory locks."""
    return getattr(settings, 'STARTUPGATE_DATABASE_ALIAS', 'default')


def get_cache_alias() -> str:
    """Get cache alias holding readiness attributes."""
    return getattr(settings, 'STARTUPGATE_CACHE_ALIAS', 'default')


def get_key_prefix() -> str:
    return getattr(settings, 'STARTUPGATE_KEY_PREFIX', 'startupgate')


def get_readiness_ttl() -> int | None:
    """Get readiness TTL in seconds (None never expires)."""
    return getattr(settings, 'STARTUPGATE_READINESS_TTL_SEC', None)


def get_poll_interval() -> float:
    return getattr(settings, 'STARTUPGATE_POLL_INTERVAL_SEC', 1.0)


def get_wait_timeout() -> float | None:
    """Get default wait timeout in seconds (None waits forever)."""
    return getattr(settings, 'STARTUPGATE_WAIT_TIMEOUT_SEC', None)


def get_unreachable_after() -> int:
    """Get number of consecutive failed polls treated as unreachable."""
    return getattr(settings, 'STARTUPGATE_UNREACHABLE_AFTER', 5)


def get_settle_delay() -> float:
    return getattr(settings, 'STARTUPGATE_SETTLE_DELAY_SEC', 10)


def get_retry_delay() -> float:
    return getattr(settings, 'STARTUPGATE_RETRY_DELAY_SEC', 10)


def get_max_retries() -> int:
    return getattr(settings, 'STARTUPGATE_MAX_RETRIES', 1)


def get_init_commands() -> list[str]:
    return list(getattr(settings, 'STARTUPGATE_INIT_COMMANDS', []))


def get_launch_commands() -> list[str]:
    return list(getattr(settings, 'STARTUPGATE_LAUNCH_COMMANDS', []))


def get_runtime_check_commands() -> list[str]:
    return list(getattr(settings, 'STARTUPGATE_RUNTIME_CHECK_COMMANDS', ['which java']))


def get_runtime_version_commands() -> list[str]:
    return list(getattr(settings, 'STARTUPGATE_RUNTIME_VERSION_COMMANDS', ['java -version']))


def get_runtime_install_commands() -> list[str]:
    """Get runtime install commands (empty disables provisioning)."""
    return list(getattr(settings, 'STARTUPGATE_RUNTIME_INSTALL_COMMANDS', []))


def get_stats_address() -> tuple[str, int] | None:
    """Get (host, port) of the carbon listener, or None when disabled."""
    address = getattr(settings, 'STARTUPGATE_STATS_ADDRESS', None)
    if address is None:
        return None
    host, port = address
    return host, int(port)


def get_stats_prefix() -> str:
    return getattr(settings, 'STARTUPGATE_STATS_PREFIX', 'startupgate')


def get_resolve_locations() -> bool:
    return bool(getattr(settings, 'STARTUPGATE_RESOLVE_LOCATIONS', False))
