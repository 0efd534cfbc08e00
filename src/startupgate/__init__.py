"""Module: startupgate

Purpose: Coordinated startup for server instances sharing a database and broker.

Key Components:
- StartupGateMixin: Mixin for AppConfig to register database init/customize hooks
- gate: Exactly-once init behind a cluster-wide lock
- sequencer: Per-instance ordering (provision, gate, wait, launch, publish)
- provisioning: Host-locked runtime install with one retry
- Management commands: startup, readiness, ensure_runtime

Architecture:
Cluster-wide locks use PostgreSQL advisory locks (django-pglock) or file
locks on a shared directory (filelock). Host install locks use filelock.
Readiness attributes live in the Django cache (Redis recommended).

Related Modules:
- django-pglock: PostgreSQL advisory locks
- filelock: File-based locking
"""

__version__ = '0.1.0'

from startupgate.mixins import StartupGateMixin

__all__ = ['StartupGateMixin', '__version__']
