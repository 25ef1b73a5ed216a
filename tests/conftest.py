from http.client import HTTPConnection

import pytest

from range_file_server.config import ServerConfig
from range_file_server.dispatcher import Dispatcher
from range_file_server.server import RangeFileServer


class LogCapture:
    def __init__(self):
        self.lines = []
        self.errors = []

    def log(self, message):
        self.lines.append(message)

    def log_error(self, message):
        self.errors.append(message)


@pytest.fixture
def root(tmp_path):
    served = tmp_path / "srv"
    served.mkdir()
    return served


@pytest.fixture
def config(root):
    return ServerConfig(root=str(root), port=0, chunk_size=64)


@pytest.fixture
def logs():
    return LogCapture()


@pytest.fixture
def dispatcher(config, logs):
    return Dispatcher(config, log=logs.log, log_error=logs.log_error)


@pytest.fixture
def server(config):
    with RangeFileServer(config) as srv:
        yield srv


@pytest.fixture
def http_request(server):
    """Send one request on a fresh connection; returns (status, headers, body)."""

    def send(method, path, body=None, headers=None):
        conn = HTTPConnection("127.0.0.1", server.port, timeout=10)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            resp = conn.getresponse()
            return resp.status, resp.headers, resp.read()
        finally:
            conn.close()

    return send
