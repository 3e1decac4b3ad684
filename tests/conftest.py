import os
import socket
import threading
from typing import Callable, List

import pytest

ENVIRONMENT_VARIABLES = {
    "RETRIEVE_TIMEOUT",
    "RETRIEVE_OUTPUT",
    "RETRIEVE_FOLLOW_REDIRECTS",
    "RETRIEVE_CHUNK_SIZE",
    "RETRIEVE_USER_AGENT",
    "RETRIEVE_LOG_LEVEL",
}

Handler = Callable[[socket.socket, threading.Event], None]


@pytest.fixture(scope="function", autouse=True)
def clean_environ(monkeypatch):
    """Keeps RETRIEVE_* settings from the outer shell out of every test"""
    for key in ENVIRONMENT_VARIABLES:
        if key in os.environ:
            monkeypatch.delenv(key)
    yield


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    """Run the test with the working directory set to tmp_path."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class ScriptedServer:
    """
    Loopback TCP server that reads each request and hands the raw connection
    to ``handler(conn, stop)``. Handlers wait on ``stop`` instead of sleeping
    so teardown is quick.
    """

    def __init__(self, handler: Handler):
        self._handler = handler
        self._stop = threading.Event()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen()
        self._sock.settimeout(0.1)
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def url(self) -> str:
        host, port = self._sock.getsockname()
        return f"http://{host}:{port}"

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket) -> None:
        with conn:
            conn.settimeout(10)
            try:
                conn.recv(65536)
                self._handler(conn, self._stop)
            except OSError:
                # Client hung up
                return

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=1)
        self._sock.close()


@pytest.fixture
def serve():
    """Start ScriptedServers for the test and stop them afterwards."""
    servers: List[ScriptedServer] = []

    def start(handler: Handler) -> ScriptedServer:
        server = ScriptedServer(handler)
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.close()
