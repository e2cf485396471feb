"""
accesslog — Instrumented Response Sink
=======================================

What:  A wrapper around the ASGI `send` callable that records the response
       status and the number of body bytes while forwarding every message.
Why:   The application talks to `send` directly; the only way to learn what
       it answered, without changing it, is to sit on that channel.
How:   Each message is inspected by type, forwarded unchanged, and the record
       is updated.

Message handling:
    http.response.start     status recorded BEFORE forwarding (last one wins)
    http.response.body      forwarded, THEN len(body) added to size
    http.response.zerocopy  forwarded, THEN `count` (or rest of file) added
    http.response.pathsend  forwarded, THEN size of the file added
    anything else           forwarded untouched (trailers, early hints, ...)

Byte counts are added only after the server's `send` returned. If `send`
raises (client went away), the exception propagates as is and the bytes of
that message are not counted: an ASGI send is all-or-nothing.

Transparency:
    The scope, including `scope["extensions"]`, reaches the application with
    the same capabilities the server advertised. Attributes the wrapper does
    not define are looked up on the wrapped callable, so code probing `send`
    for server-specific features keeps working.
"""

import os
from typing import Any, Optional

from starlette.types import Message, Send

from accesslog.record import RequestRecord


def _zerocopy_count(message: Message) -> int:
    count: Optional[int] = message.get("count")
    if count is not None:
        return count
    file = message["file"]
    fd = file if isinstance(file, int) else file.fileno()
    offset = message.get("offset")
    if offset is None:
        offset = os.lseek(fd, 0, os.SEEK_CUR)
    return max(os.fstat(fd).st_size - offset, 0)


class InstrumentedSend:
    """
    ASGI `send` decorator feeding a RequestRecord.

    Usage:
        sink = InstrumentedSend(send, record)
        await app(scope, receive, sink)
        record.status, record.size  # what the application sent
    """

    def __init__(self, send: Send, record: RequestRecord):
        self._send = send
        self.record = record

    @property
    def wrapped(self) -> Send:
        return self._send

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            self.record.status = message["status"]
            await self._send(message)

        elif message_type == "http.response.body":
            await self._send(message)
            self.record.size += len(message.get("body", b""))

        elif message_type == "http.response.zerocopy":
            # Measured first: sending may move the file position.
            count = _zerocopy_count(message)
            await self._send(message)
            self.record.size += count

        elif message_type == "http.response.pathsend":
            count = os.path.getsize(message["path"])
            await self._send(message)
            self.record.size += count

        else:
            await self._send(message)

    def __getattr__(self, name: str) -> Any:
        # Only reached for attributes not defined on the wrapper itself.
        try:
            wrapped = self.__dict__["_send"]
        except KeyError:
            raise AttributeError(name) from None
        return getattr(wrapped, name)

    def __repr__(self) -> str:
        return f"InstrumentedSend({self._send!r})"
