"""
=============================================================================
ROUTER RESPONSE
=============================================================================

The mutable response every handler of a request shares. Handlers set the
status and headers, append to the body, and one of them ends it.

=============================================================================
RESPONSE LIFECYCLE
=============================================================================

    ┌───────────────────────────────────────────────────────────────────┐
    │                                                                   │
    │   RouterResponse()          status_code = None (unset)            │
    │        │                                                          │
    │        ├── status(200)      handlers write...                     │
    │        ├── headers[...]                                           │
    │        ├── send("Hello")    body is append-only                   │
    │        ├── send(", world")                                        │
    │        │                                                          │
    │        ▼                                                          │
    │   end()                     sent = True, end listeners fire       │
    │        │                                                          │
    │        ├── send(...)   ──►  ResponseFinalizedError                │
    │        ├── status(...) ──►  ResponseFinalizedError                │
    │        └── end()       ──►  ResponseFinalizedError                │
    │                                                                   │
    │   cancel()                  request abandoned by the server:      │
    │        └── any write   ──►  RequestCancelledError                 │
    │                                                                   │
    └───────────────────────────────────────────────────────────────────┘

Write methods return self, so handlers chain them:

    response.status(HTTPStatus.OK).send("Got a POST request").end()

=============================================================================
ERRORS AS A SIDE CHANNEL
=============================================================================

``response.error`` is not raised. A handler assigns it and calls next();
the router sees it once normal dispatch stops and passes the request to the
error handlers, which read it back to build the body.

=============================================================================
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
import json
import logging
import threading

from ..errors import RenderError, RequestCancelledError, ResponseFinalizedError
from .headers import Headers
from .status_codes import HTTPStatus, reason_phrase


logger = logging.getLogger(__name__)

EndListener = Callable[["RouterResponse"], None]


class DispatchState(Enum):
    """
    Where a request is in its handling.

        UNMATCHED ──► DISPATCHING ──► ERRORED ──► FINALIZED
            │              │                          ▲
            └──────────────┴──────────────────────────┘

    FINALIZED is terminal: nothing un-ends a response.
    """
    UNMATCHED = "unmatched"        # no route entry matched yet
    DISPATCHING = "dispatching"    # at least one entry's handlers ran
    ERRORED = "errored"            # response.error is set
    FINALIZED = "finalized"        # end() was called


class _ResponseHeaders(Headers):
    """Headers that refuse changes once their response is ended."""

    def __init__(self, response: "RouterResponse"):
        self._response = response
        super().__init__()

    def __setitem__(self, name: str, value: str) -> None:
        self._response._check_writable()
        super().__setitem__(name, value)

    def __delitem__(self, name: str) -> None:
        self._response._check_writable()
        super().__delitem__(name)


class RouterResponse:
    """
    Response under construction for one request.

    Attributes:
        status_code: Integer status, or None while no handler has set one.
        headers: Case-insensitive header mapping (frozen after end()).
        error: Application error value set by a handler, or None.
        template_engine: Engine used by render(); attached by the router.
    """

    def __init__(self, template_engine: Optional[Any] = None, version: str = "HTTP/1.1"):
        self.status_code: Optional[int] = None
        self.headers: Headers = _ResponseHeaders(self)
        self.error: Any = None
        self.template_engine = template_engine
        self.version = version

        self._body = bytearray()
        self._sent = False
        self._cancelled = False
        self._matched = False
        self._lock = threading.Lock()
        self._end_listeners: List[EndListener] = []

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> DispatchState:
        if self._sent:
            return DispatchState.FINALIZED
        if self.error is not None:
            return DispatchState.ERRORED
        if self._matched:
            return DispatchState.DISPATCHING
        return DispatchState.UNMATCHED

    def _mark_matched(self) -> None:
        self._matched = True

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    @property
    def sent(self) -> bool:
        """True once end() has been called."""
        return self._sent

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _check_writable(self) -> None:
        if self._cancelled:
            raise RequestCancelledError("Request was cancelled; response discarded")
        if self._sent:
            raise ResponseFinalizedError("Response already ended")

    # =========================================================================
    # WRITING
    # =========================================================================

    def status(self, code: Union[HTTPStatus, int]) -> "RouterResponse":
        """Set the status code."""
        with self._lock:
            self._check_writable()
            self.status_code = int(code)
        return self

    def set_header(self, name: str, value: str) -> "RouterResponse":
        """Set a header (chainable)."""
        self.headers[name] = value
        return self

    def send(self, data: Union[str, bytes]) -> "RouterResponse":
        """
        Append to the body.

        Strings are encoded as UTF-8.

        Raises:
            ResponseFinalizedError: If the response was already ended.
            RequestCancelledError: If the request was cancelled.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            self._check_writable()
            self._body.extend(data)
        return self

    def send_json(self, data: Any) -> "RouterResponse":
        """Append JSON-encoded data and set Content-Type if unset."""
        if "Content-Type" not in self.headers:
            self.headers["Content-Type"] = "application/json"
        return self.send(json.dumps(data))

    def end(self, data: Optional[Union[str, bytes]] = None) -> "RouterResponse":
        """
        Finalize the response.

        After this no handler can change status, headers or body. End
        listeners run once, in registration order; a failing listener is
        logged and does not affect the response.

        Raises:
            ResponseFinalizedError: If end() was already called.
            RequestCancelledError: If the request was cancelled.
        """
        if data is not None:
            self.send(data)

        with self._lock:
            self._check_writable()
            self._sent = True
            listeners = list(self._end_listeners)

        for listener in listeners:
            try:
                listener(self)
            except Exception:
                logger.exception("End listener failed")
        return self

    def redirect(
        self,
        location: str,
        status: Union[HTTPStatus, int] = HTTPStatus.FOUND
    ) -> "RouterResponse":
        """
        Redirect the client and end the response.

        Args:
            location: Target URL for the Location header.
            status: 301/302/303/307/308; 302 Found by default.
        """
        self.status(status)
        self.headers["Location"] = location
        return self.end()

    def render(self, template: str, context: Optional[Dict[str, Any]] = None) -> "RouterResponse":
        """
        Render a template and append the result to the body.

        Uses the router's default template engine. Content-Type defaults to
        "text/html; charset=utf-8" when no handler set one.

        Raises:
            RenderError: If there is no engine or rendering fails.
        """
        self._check_writable()
        if self.template_engine is None:
            raise RenderError("No template engine configured", template=template)

        text = self.template_engine.render(template, context or {})
        if "Content-Type" not in self.headers:
            self.headers["Content-Type"] = "text/html; charset=utf-8"
        return self.send(text)

    # =========================================================================
    # DISPATCH HOOKS
    # =========================================================================

    def on_end(self, listener: EndListener) -> None:
        """Register a callback run when the response is ended."""
        self._end_listeners.append(listener)

    def cancel(self) -> None:
        """
        Abandon the response.

        Subsequent writes raise RequestCancelledError. Idempotent.
        """
        with self._lock:
            self._cancelled = True

    def _discard_body(self) -> None:
        """Drop the body written so far (used before error handlers run)."""
        with self._lock:
            if not self._sent:
                self._body.clear()

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 200 OK". An unset status is sent as 200."""
        code = self.status_code if self.status_code is not None else int(HTTPStatus.OK)
        return f"{self.version} {code} {reason_phrase(code)}"

    def to_bytes(
        self,
        server_name: str = "routekit/1.0",
        extra_headers: Optional[Dict[str, str]] = None
    ) -> bytes:
        """
        Serialize for socket.sendall().

            HTTP/1.1 200 OK\\r\\n
            Content-Type: text/plain; charset=utf-8\\r\\n
            Content-Length: 25\\r\\n          ← auto
            Date: Mon, 19 Oct 2026 ...\\r\\n   ← auto
            Server: routekit/1.0\\r\\n         ← auto
            Connection: keep-alive\\r\\n       ← extra_headers
            \\r\\n
            Hello World, from Kitura!

        Args:
            server_name: Value for the Server header.
            extra_headers: Connection-level headers added by the server;
                           they do not count as writes to the response.
        """
        response_headers = Headers(dict(self.headers.items()))
        for name, value in (extra_headers or {}).items():
            response_headers[name] = value

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self._body))
        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + bytes(self._body)

    def __repr__(self) -> str:
        return (
            f"RouterResponse(status_code={self.status_code!r}, "
            f"sent={self._sent}, body={len(self._body)} bytes, error={self.error!r})"
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT. Always GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def plain_response(status: Union[HTTPStatus, int], message: str) -> RouterResponse:
    """
    Build an ended text/plain response.

    Used by the server for answers produced outside the router
    (parse errors, overload, timeouts).
    """
    response = RouterResponse()
    response.status(status)
    response.headers["Content-Type"] = "text/plain; charset=utf-8"
    return response.end(message)
