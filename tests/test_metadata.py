import socketserver
import threading

import pytest

from startupgate.metadata import StatsRecorder, make_valid_name


@pytest.mark.parametrize(
    'value, name',
    [
        ('Trading Cluster', 'Trading_Cluster'),
        ('10.0.0.5', '_10_0_0_5'),
        ('og-server', 'og_server'),
        ('', '_'),
    ],
)
def test_make_valid_name(value, name):
    assert make_valid_name(value) == name


@pytest.fixture
def carbon():
    lines = []

    class Handler(socketserver.StreamRequestHandler):
        def handle(self):
            for line in self.rfile:
                lines.append(line.decode().rstrip('\n'))

    server = socketserver.ThreadingTCPServer(('127.0.0.1', 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server.server_address, lines
    server.shutdown()
    server.server_close()


def wait_for(lines, count):
    import time

    deadline = time.monotonic() + 2
    while len(lines) < count and time.monotonic() < deadline:
        time.sleep(0.01)


def test_records_carbon_lines(carbon):
    address, lines = carbon
    recorder = StatsRecorder(address, prefix='dotNext')

    recorder.record_app('app1', 'Trading')
    recorder.record_instance('app1', 'og-1', 'IP', '10.0.0.5')
    wait_for(lines, 2)

    keys = sorted(line.split(' ')[0] for line in lines)
    assert keys == ['dotNext.app1.DisplayName:Trading', 'dotNext.app1.og-1.IP:_10_0_0_5']
    assert all(line.split(' ')[1] == '0' for line in lines)
    assert all(line.split(' ')[2].isdigit() for line in lines)
