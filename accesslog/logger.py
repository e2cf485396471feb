"""
accesslog — Logger, Printers
=============================

What:  Turns a finalized RequestRecord into a line and writes it somewhere.
Why:   The middleware should not care about log layout or destination.
How:   A Logger is three pluggable pieces:

    creator    scope  → RequestRecord   (accesslog.creators)
    formatter  record → str             (accesslog.formatters)
    printer    (record, line) → output  (this module)

Thread Safety:
    The output stream is the only resource shared by concurrent requests.
    Requests may be served from an event loop and from threadpool workers at
    the same time, and several Loggers (one per mounted app) may write to the
    same stream. The lock therefore belongs to the stream, not to the printer:
    lock_for(stream) hands every StreamPrinter writing to one stream the same
    threading.Lock, so each line is written and flushed whole before the next
    one starts.
"""

import logging
import sys
import threading
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, TextIO, Tuple

from accesslog.config import Settings
from accesslog.creators import Creator, default_creator
from accesslog.formatters import FORMATTERS, Formatter, format_common
from accesslog.record import RequestRecord

# ── Per-stream locks ──────────────────────────────────────────────────────
# Weakly keyed so a closed, discarded stream does not keep its lock alive.
# Streams that refuse weak references are pinned by id together with the
# stream itself, so the id cannot be reused while the entry exists.
_registry_lock = threading.Lock()
_stream_locks: "weakref.WeakKeyDictionary[Any, threading.Lock]" = weakref.WeakKeyDictionary()
_pinned_locks: Dict[int, Tuple[Any, threading.Lock]] = {}


def lock_for(stream: Any) -> threading.Lock:
    """The lock guarding writes to `stream`, shared by all of its printers."""
    with _registry_lock:
        try:
            lock = _stream_locks.get(stream)
            if lock is None:
                lock = _stream_locks[stream] = threading.Lock()
            return lock
        except TypeError:
            entry = _pinned_locks.get(id(stream))
            if entry is None:
                entry = _pinned_locks[id(stream)] = (stream, threading.Lock())
            return entry[1]


class Printer(Protocol):
    """Output sink for formatted lines. Must be safe to call concurrently."""

    def emit(self, record: RequestRecord, line: str) -> None:
        ...


class StreamPrinter:
    """
    Writes one line per request to a text stream.

    With no stream given, the current `sys.stdout` is looked up on every write,
    so redirecting stdout (tests, daemonizing) is honored.
    Write errors propagate to the caller; nothing is retried.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def emit(self, record: RequestRecord, line: str) -> None:
        stream = self.stream
        with lock_for(stream):
            stream.write(line + "\n")
            stream.flush()


class LoggingPrinter:
    """
    Emits lines through a stdlib logger instead of a raw stream.

    Level follows the status code, so alerting can key on severity:
        5xx → ERROR, 4xx → WARNING, everything else → INFO

    The record's fields are attached as `extra` for structured handlers.
    Handler-level locking in the logging module keeps lines whole.
    """

    def __init__(self, name: str = "accesslog.access"):
        self.logger = logging.getLogger(name)

    def emit(self, record: RequestRecord, line: str) -> None:
        status = record.status
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        duration = record.duration
        self.logger.log(
            level,
            "%s",
            line,
            extra={
                "method": record.method,
                "request_uri": record.request_uri,
                "status": status,
                "size": record.size,
                "remote_addr": record.remote_addr,
                "duration_ms": (
                    round(duration.total_seconds() * 1000, 2) if duration is not None else None
                ),
            },
        )


@dataclass(frozen=True)
class Logger:
    """
    Immutable access log configuration handed to AccessLogMiddleware.

    Logger() with no arguments is the zero-configuration default: empty
    identity/auth user, common log format, standard output.
    """

    creator: Creator = default_creator
    formatter: Formatter = format_common
    printer: Printer = field(default_factory=StreamPrinter)

    def create(self, scope: Mapping[str, Any]) -> RequestRecord:
        return self.creator(scope)

    def log(self, record: RequestRecord) -> None:
        """Format and emit a finalized record. Errors propagate."""
        self.printer.emit(record, self.formatter(record))


def build_logger(settings: Settings, creator: Creator = default_creator) -> Logger:
    """Create a Logger from Settings (format and output selection)."""
    if settings.log_output == "logging":
        printer: Printer = LoggingPrinter(settings.logger_name)
    elif settings.log_output == "stderr":
        printer = StreamPrinter(sys.stderr)
    else:
        printer = StreamPrinter()

    return Logger(
        creator=creator,
        formatter=FORMATTERS[settings.log_format],
        printer=printer,
    )
