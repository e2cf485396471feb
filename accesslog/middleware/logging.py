"""
accesslog — Access Log Middleware
==================================

What:  Pure ASGI middleware writing one access log line per HTTP request.
Why:   Common-log-format access logs for any ASGI application, without
       changes to handler code.
How:   Wraps `send` to observe the response, binds a mutable RequestRecord
       into the request scope, and logs the record once the application
       returns.

Why pure ASGI (not BaseHTTPMiddleware):
    BaseHTTPMiddleware only sees the Response object returned by call_next,
    not the bytes actually written, and runs the endpoint in a separate task.
    Wrapping `send` counts exactly what the server accepted.

Request Pipeline:

    scope ──▶ create record ──▶ bind record ──▶ app(scope', receive, sink)
                                                         │
                     log ◀── finalize ◀─────── app returns

    create:    Logger.create(scope); identity and start time captured now
    bind:      scope' = scope + {SCOPE_KEY: record}; current_record set
    finalize:  done = now(); status 0 → 200
    log:       Logger.log(record), unless the path is in skip_paths

Metadata back-channel:
    Request context only flows downstream. To let a nested handler add
    facts to the log line, the record itself (a mutable object) is placed
    in the scope by reference. Every layer below sees the same record:

        @app.get("/admin")
        async def admin(request: Request):
            set_value(request, "role", "admin")

    The record is also available through current_record() for code that has
    no request object, e.g. a dependency or a service function.

Failure policy:
    If the application raises, the exception propagates untouched and the
    request is NOT logged. Error handling belongs to the framework's own
    exception middleware.
"""

import logging
from contextvars import ContextVar
from typing import Any, Hashable, Iterable, Mapping, Optional

from starlette.types import ASGIApp, Receive, Scope, Send

from accesslog.exceptions import RecordNotFoundError
from accesslog.logger import Logger
from accesslog.middleware.response import InstrumentedSend
from accesslog.record import RequestRecord

log = logging.getLogger(__name__)

# Scope key under which the request's record is stored
SCOPE_KEY = "accesslog.record"

# ── Context Variable ──────────────────────────────────────────────────────
# What: The record of the request the current task is serving
# Why both scope and ContextVar: handlers reach it through `request`,
# services and dependencies without a request reach it through the ContextVar.
# Tasks and threadpool workers inherit a copy of the context, which still
# points at the same record object.
_current_record: ContextVar[Optional[RequestRecord]] = ContextVar(
    "accesslog_record", default=None
)


def get_record(request: Any) -> RequestRecord:
    """
    Return the RequestRecord bound to a request.

    `request` is a Starlette Request/HTTPConnection/WebSocket or a raw
    ASGI scope mapping. Raises RecordNotFoundError if the request did not
    pass through AccessLogMiddleware.
    """
    scope = getattr(request, "scope", request)
    record = scope.get(SCOPE_KEY) if isinstance(scope, Mapping) else None
    if record is None:
        context = {"path": scope.get("path")} if isinstance(scope, Mapping) else {}
        raise RecordNotFoundError(context=context)
    return record


def set_value(request: Any, key: Hashable, value: Any) -> None:
    """Attach key/value to the request's access log record. Last write wins."""
    get_record(request).values.set(key, value)


def get_value(request: Any, key: Hashable, default: Any = None) -> Any:
    """Value previously attached with set_value(), or default if never set."""
    return get_record(request).values.get(key, default)


def current_record() -> RequestRecord:
    """Record of the request being served in this context."""
    record = _current_record.get()
    if record is None:
        raise RecordNotFoundError("No request is being served in this context")
    return record


class AccessLogMiddleware:
    """
    Logs every HTTP request after the wrapped application has answered it.

    Args:
        app:         The ASGI application to wrap
        logger:      Creator/formatter/printer bundle; Logger() by default
                     (common log format on standard output)
        skip_paths:  Paths that are served and recorded but not logged

    WebSocket and lifespan scopes pass through untouched.

    Usage with FastAPI/Starlette:
        app.add_middleware(AccessLogMiddleware, logger=Logger(formatter=format_combined))
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: Optional[Logger] = None,
        skip_paths: Iterable[str] = (),
    ):
        self.app = app
        self.logger = logger if logger is not None else Logger()
        self.skip_paths = frozenset(skip_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        record = self.logger.create(scope)

        scope = {**scope, SCOPE_KEY: record}
        token = _current_record.set(record)
        try:
            await self.app(scope, receive, InstrumentedSend(send, record))
        except BaseException:
            log.debug(
                "%s %s raised before completing; not logged",
                record.method,
                record.request_uri,
            )
            raise
        finally:
            _current_record.reset(token)

        record.finalize()

        if record.path in self.skip_paths:
            return
        self.logger.log(record)
