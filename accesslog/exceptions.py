"""
accesslog — Exception Hierarchy
================================

What:  Errors raised by the access log layer itself.
Why:   Misuse of the request record (wrong place, wrong time) must fail loudly.
       A silently dropped metadata value would corrupt the access log with no
       visible symptom.
How:   Each exception carries a message and an optional context dict, like
       every other error in the package.

Exception Hierarchy:
    AccessLogError (base)
    ├── RecordNotFoundError          (also a LookupError)
    └── RecordAlreadyFinalizedError  (also a RuntimeError)

What is NOT wrapped:
    Errors from the underlying ASGI `send`, from the wrapped application, from
    formatters and from printers propagate exactly as raised. This layer never
    translates or retries them.
"""

from typing import Any, Dict, Optional


class AccessLogError(Exception):
    """
    Base exception for all accesslog errors.

    Attributes:
        message:  Human-readable description
        context:  Additional debug info (scope type, path, key, ...)
    """

    def __init__(
        self,
        message: str = "Access log error",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class RecordNotFoundError(AccessLogError, LookupError):
    """
    Raised when request metadata is read or written outside the middleware.

    When:    set_value()/get_value()/get_record() receive a request whose scope
             never went through AccessLogMiddleware, or current_record() is
             called outside a request.
    Why:     This is a programming error (middleware not installed, or called
             from a background job), not a runtime condition to recover from.
    """

    def __init__(
        self,
        message: str = "No access log record is bound to this request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message + "; is AccessLogMiddleware installed?",
            context=context,
        )


class RecordAlreadyFinalizedError(AccessLogError, RuntimeError):
    """Raised when finalize() is called a second time on the same record."""

    def __init__(
        self,
        message: str = "Request record was already finalized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
