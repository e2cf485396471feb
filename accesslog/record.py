"""
accesslog — Request Record
===========================

What:  The per-request object an access log line is rendered from.
Why:   The response status, byte count and timing are only known after the
       wrapped application returns, and handlers deep in the call tree may
       want to add facts (resolved user, tenant, role) to the log line.
How:   One RequestRecord per request, created before the application runs,
       mutated by the instrumented `send` and by set_value(), finalized once
       the application returns.

Lifecycle:
    Created → Dispatched → Finalized → Logged

    Created:    identity fields copied from the ASGI scope, start = now()
    Dispatched: status/size updated as response messages pass through
    Finalized:  done = now(), status defaults to 200 when never sent
    Logged:     handed to the Logger (formatter + printer)
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Hashable, Iterator, Mapping, Optional
from urllib.parse import quote

from starlette.datastructures import Headers

from accesslog.exceptions import RecordAlreadyFinalizedError

# Status used when the application never sent `http.response.start`
DEFAULT_STATUS = 200


def now() -> datetime:
    """Current time as an aware UTC datetime. Replaced in tests to pin time."""
    return datetime.now(timezone.utc)


class MetadataStore:
    """
    Mutable key → value facts attached to one request.

    What:    The back-channel from nested handlers to the access log line.
    Why:     Request context only flows forward; a handler cannot hand values
             back to the middleware through it. Sharing one mutable store by
             reference solves that.
    How:     A dict allocated on first write, guarded by a lock because a
             handler may fan out into threads or tasks that all write to it.

    Keys are any hashable objects. A missing key is not an error.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: Optional[Dict[Hashable, Any]] = None

    def set(self, key: Hashable, value: Any) -> None:
        """Store value under key. Last write wins."""
        with self._lock:
            if self._values is None:
                self._values = {}
            self._values[key] = value

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the value stored under key, or default if it was never set."""
        with self._lock:
            if self._values is None:
                return default
            return self._values.get(key, default)

    def snapshot(self) -> Dict[Hashable, Any]:
        """Copy of the current contents."""
        with self._lock:
            return dict(self._values or {})

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return self._values is not None and key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values or {})

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"MetadataStore({self.snapshot()!r})"


@dataclass(eq=False)
class RequestRecord:
    """
    Everything known about one request, from arrival to the log line.

    Identity attributes (method, request_uri, path, remote_addr, ...) are
    copied from the scope before the application runs, so a router rewriting
    `scope["path"]` does not change what gets logged.

    Attributes:
        status:  Last status sent by the application, 0 until one is sent
        size:    Total body bytes accepted by the server's `send`
        start:   When the middleware received the request
        done:    When the application returned (None until finalize())
        values:  Metadata attached by handlers via set_value()
    """

    method: str
    request_uri: str
    path: str
    query_string: str = ""
    protocol: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    remote_addr: Optional[str] = None
    remote_port: Optional[int] = None
    identity: str = ""
    auth_user: str = ""
    start: Optional[datetime] = None
    done: Optional[datetime] = None
    status: int = 0
    size: int = 0
    values: MetadataStore = field(default_factory=MetadataStore)

    def __post_init__(self) -> None:
        if self.start is None:
            self.start = now()

    @classmethod
    def from_scope(cls, scope: Mapping[str, Any], **kwargs: Any) -> "RequestRecord":
        """
        Build a record from an ASGI `http` scope.

        `raw_path` is preferred over `path` because it is what the client
        actually sent (still percent-encoded); some servers include the query
        string in it, so it is cut at "?".
        Extra keyword arguments (identity, auth_user, ...) are passed through.
        """
        raw_path = scope.get("raw_path")
        if raw_path:
            path = raw_path.split(b"?", 1)[0].decode("latin-1")
        else:
            path = quote(scope.get("root_path", "") + scope.get("path", ""))

        query_string = scope.get("query_string", b"").decode("latin-1")
        request_uri = f"{path}?{query_string}" if query_string else path

        client = scope.get("client")
        remote_addr, remote_port = (client[0], client[1]) if client else (None, None)

        return cls(
            method=scope.get("method", "GET"),
            request_uri=request_uri,
            path=path,
            query_string=query_string,
            protocol="HTTP/" + scope.get("http_version", "1.1"),
            headers=Headers(raw=list(scope.get("headers", []))),
            remote_addr=remote_addr,
            remote_port=remote_port,
            **kwargs,
        )

    @property
    def finalized(self) -> bool:
        return self.done is not None

    @property
    def duration(self) -> Optional[timedelta]:
        """Time the application took, or None before finalize()."""
        if self.done is None:
            return None
        return self.done - self.start

    def finalize(self) -> None:
        """
        Stamp the completion time and default the status.

        Called exactly once, by the middleware, after the application returns.
        `done` never precedes `start`, even if the wall clock stepped back.
        """
        if self.done is not None:
            raise RecordAlreadyFinalizedError(
                context={"request_uri": self.request_uri, "done": self.done.isoformat()}
            )
        self.done = max(now(), self.start)
        if self.status == 0:
            self.status = DEFAULT_STATUS
