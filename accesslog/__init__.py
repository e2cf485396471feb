"""
accesslog — Access Log Middleware Package
==========================================

What: ASGI middleware that writes one Apache-style access log line per request.
Why:  Operators get "common log format" logs without touching handler code.
Who:  Installed around any ASGI application (FastAPI, Starlette, ...).

Architecture Note:

    ┌─────────────────────────────────────┐
    │   AccessLogMiddleware (pipeline)    │  ← create → dispatch → finalize → log
    ├─────────────────────────────────────┤
    │   InstrumentedSend (response sink)  │  ← counts bytes, records status
    ├─────────────────────────────────────┤
    │   RequestRecord + MetadataStore     │  ← per-request facts, set_value()
    ├─────────────────────────────────────┤
    │   Logger (creator/formatter/printer)│  ← record → line → output
    └─────────────────────────────────────┘

Usage:

    from accesslog import AccessLogMiddleware, set_value

    app.add_middleware(AccessLogMiddleware)

    @app.get("/items")
    async def items(request: Request):
        set_value(request, "role", "admin")
        ...
"""

from accesslog.creators import basic_auth_user, default_creator, new_creator
from accesslog.exceptions import (
    AccessLogError,
    RecordAlreadyFinalizedError,
    RecordNotFoundError,
)
from accesslog.formatters import format_combined, format_common
from accesslog.logger import Logger, LoggingPrinter, StreamPrinter
from accesslog.middleware.logging import (
    AccessLogMiddleware,
    current_record,
    get_record,
    get_value,
    set_value,
)
from accesslog.record import MetadataStore, RequestRecord

__version__ = "1.0.0"

__all__ = [
    "AccessLogError",
    "AccessLogMiddleware",
    "Logger",
    "LoggingPrinter",
    "MetadataStore",
    "RecordAlreadyFinalizedError",
    "RecordNotFoundError",
    "RequestRecord",
    "StreamPrinter",
    "basic_auth_user",
    "current_record",
    "default_creator",
    "format_combined",
    "format_common",
    "get_record",
    "get_value",
    "new_creator",
    "set_value",
]
