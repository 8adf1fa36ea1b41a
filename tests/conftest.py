"""Shared pytest fixtures for the search-logger test suite."""

import datetime
import json
import socket
import threading

import httpx
import pytest

from search_logger.app import create_app
from search_logger.config import AppConfig
from search_logger.dispatcher import Dispatcher
from search_logger.models import DefinitionStatus, DeliveryState, SinkResult

FIXED_NOW = datetime.datetime(2024, 1, 15, 10, 30, 0, tzinfo=datetime.timezone.utc)

DICTIONARY_ENTRY = [
    {
        "word": "serendipity",
        "meanings": [
            {
                "partOfSpeech": "noun",
                "definitions": [
                    {"definition": "An unsought, unintended, and/or unexpected discovery."},
                    {"definition": "A second definition."},
                ],
            },
            {
                "partOfSpeech": "verb",
                "definitions": [{"definition": "Not the first meaning."}],
            },
        ],
    }
]


class RecordingSink:
    """In-memory sink that records what it was given."""

    def __init__(self, name="recording", enabled=True, fail=False):
        self.name = name
        self._enabled = enabled
        self._fail = fail
        self.events = []
        self.reports = []
        self.called = threading.Event()

    @property
    def enabled(self):
        return self._enabled

    def send(self, event):
        self.events.append(event)
        self.called.set()
        if self._fail:
            raise RuntimeError("sink exploded")
        return SinkResult(self.name, DeliveryState.DELIVERED)

    def send_error(self, report):
        self.reports.append(report)
        self.called.set()
        return SinkResult(self.name, DeliveryState.DELIVERED)


class StubEnrichment:
    def __init__(self, definition="A definition.", status=DefinitionStatus.SUCCESS, error=None):
        self.definition = definition
        self.status = status
        self.error = error
        self.terms = []

    def lookup(self, term):
        self.terms.append(term)
        if self.error is not None:
            raise self.error
        return self.definition, self.status


def transport_factory(handler, timeout=5.0):
    """Return a client factory whose clients route requests to *handler*."""
    transport = httpx.MockTransport(handler)

    def factory():
        return httpx.Client(transport=transport, timeout=timeout)

    return factory


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def enrichment():
    return StubEnrichment()


@pytest.fixture
def dispatcher(sink, enrichment, clock):
    d = Dispatcher([sink], enrichment=enrichment, clock=clock)
    yield d
    d.drain(timeout=5)


@pytest.fixture
def app(config, dispatcher):
    """Create a Flask test app around the stub dispatcher."""
    application = create_app(config, dispatcher)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()


class DrippingServer:
    """Loopback HTTP server that answers 200 but sends its body a few bytes at a time."""

    def __init__(self, body: bytes, chunk: int = 6, interval: float = 0.5):
        self._body = body
        self._chunk = chunk
        self._interval = interval
        self._stop = threading.Event()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(8)
        self._sock.settimeout(0.2)
        self.port = self._sock.getsockname()[1]

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    def start(self):
        threading.Thread(target=self._accept_loop, daemon=True).start()

    def stop(self):
        self._stop.set()
        self._sock.close()

    def _accept_loop(self):
        while not self._stop.is_set():
            try:
                conn, _addr = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            threading.Thread(target=self._drip, args=(conn,), daemon=True).start()

    def _drip(self, conn):
        head = (
            "HTTP/1.1 200 OK\r\n"
            "Content-Type: application/json\r\n"
            f"Content-Length: {len(self._body)}\r\n"
            "Connection: close\r\n\r\n"
        ).encode()
        with conn:
            try:
                conn.recv(65536)
                conn.sendall(head)
                for i in range(0, len(self._body), self._chunk):
                    if self._stop.is_set():
                        return
                    conn.sendall(self._body[i:i + self._chunk])
                    self._stop.wait(self._interval)
            except OSError:
                return


@pytest.fixture
def dripping_server():
    """A server whose full reply takes many seconds to arrive."""
    server = DrippingServer(json.dumps(DICTIONARY_ENTRY).encode())
    server.start()
    yield server
    server.stop()
