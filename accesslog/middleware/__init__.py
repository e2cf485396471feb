# Middleware package init
"""
accesslog — Middleware Package
===============================

What:  The ASGI pieces that sit between the server and the application.

    logging.py   AccessLogMiddleware, set_value/get_value/current_record
    response.py  InstrumentedSend (status and byte counting `send` wrapper)

Placement:
    Add AccessLogMiddleware last (outermost) so that the logged status and
    size are what the client actually received, after compression and
    other response-rewriting middleware:

    Request → [AccessLog] → [GZip] → [CORS] → Route Handler
"""

from accesslog.middleware.logging import (
    SCOPE_KEY,
    AccessLogMiddleware,
    current_record,
    get_record,
    get_value,
    set_value,
)
from accesslog.middleware.response import InstrumentedSend

__all__ = [
    "SCOPE_KEY",
    "AccessLogMiddleware",
    "InstrumentedSend",
    "current_record",
    "get_record",
    "get_value",
    "set_value",
]
