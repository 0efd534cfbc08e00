"""Module: startupgate.metadata

Purpose: Record instance metadata to a carbon plaintext listener.

Recording is auxiliary: callers treat any error as a soft failure.
"""

from __future__ import annotations

import re
import socket
import time

DEFAULT_TIMEOUT = 5.0


def make_valid_name(value: str) -> str:
    """Reduce a value to identifier characters, as used in metric keys."""
    if not value:
        return '_'
    name = re.sub(r'[^A-Za-z0-9_$]', '_', value)
    if not (name[0].isalpha() or name[0] in '_$'):
        name = '_' + name
    return name


class StatsRecorder:
    """Write '<key> 0 <timestamp>' lines over TCP."""

    def __init__(self, address: tuple[str, int], prefix: str = 'startupgate', timeout: float = DEFAULT_TIMEOUT) -> None:
        self.address = address
        self.prefix = prefix
        self.timeout = timeout

    def send(self, key: str) -> None:
        line = f'{key} 0 {int(time.time())}\n'
        with socket.create_connection(self.address, timeout=self.timeout) as conn:
            conn.sendall(line.encode())

    def record_app(self, app_id: str, display_name: str) -> None:
        self.send(f'{self.prefix}.{app_id}.DisplayName:{display_name}')

    def record_instance(self, app_id: str, instance_id: str, key: str, value: str) -> None:
        self.send(f'{self.prefix}.{app_id}.{instance_id}.{key}:{make_valid_name(value)}')
