"""
accesslog — Test Configuration (conftest.py)
=============================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Most tests drive the middleware with hand-built ASGI scopes and fake
       `send` callables, so the plumbing lives here once.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── pinned_clock:   accesslog.record.now() frozen at TIME_ONE
    ├── make_scope:     factory for ASGI http scopes
    ├── receive:        ASGI receive returning an empty request body
    ├── recording_send: fake server `send` collecting messages
    ├── list_printer:   printer keeping (record, line) pairs in memory
    └── buffer:         StringIO for StreamPrinter output
"""

import io
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

import pytest

# Keep a developer's .env or shell settings out of the tests
for _name in list(os.environ):
    if _name.startswith("ACCESSLOG_"):
        del os.environ[_name]

from accesslog.record import RequestRecord  # noqa: E402

TIME_ONE = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class RecordingSend:
    """Stands in for the server's `send`: remembers every message."""

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    async def __call__(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def body(self) -> bytes:
        return b"".join(
            m.get("body", b"") for m in self.messages if m["type"] == "http.response.body"
        )


class ListPrinter:
    """Printer collecting what the Logger emits."""

    def __init__(self) -> None:
        self.emitted: List[Tuple[RequestRecord, str]] = []

    def emit(self, record: RequestRecord, line: str) -> None:
        self.emitted.append((record, line))

    @property
    def lines(self) -> List[str]:
        return [line for _, line in self.emitted]

    @property
    def records(self) -> List[RequestRecord]:
        return [record for record, _ in self.emitted]


@pytest.fixture
def pinned_clock(monkeypatch):
    """
    Freezes accesslog.record.now() so timestamps in lines are predictable.

    Usage:
        def test_line(pinned_clock):
            record = RequestRecord.from_scope(scope)
            assert record.start == TIME_ONE
    """
    monkeypatch.setattr("accesslog.record.now", lambda: TIME_ONE)
    return TIME_ONE


@pytest.fixture
def make_scope():
    """
    Factory for ASGI `http` scopes.

    Defaults describe `GET /items?x=1` from 10.0.0.1:5555 over HTTP/1.1.
    Any scope key can be overridden by keyword.
    """

    def factory(
        path: str = "/items",
        query_string: bytes = b"x=1",
        method: str = "GET",
        headers: List[Tuple[bytes, bytes]] = None,
        client: Tuple[str, int] = ("10.0.0.1", 5555),
        **extra: Any,
    ) -> Dict[str, Any]:
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode("latin-1"),
            "query_string": query_string,
            "root_path": "",
            "headers": headers or [],
            "client": client,
            "server": ("testserver", 80),
        }
        scope.update(extra)
        return scope

    return factory


@pytest.fixture
def receive():
    async def _receive() -> Dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    return _receive


@pytest.fixture
def recording_send():
    return RecordingSend()


@pytest.fixture
def list_printer():
    return ListPrinter()


@pytest.fixture
def buffer():
    return io.StringIO()
