"""
=============================================================================
HTTP REQUEST
=============================================================================

The request object handlers receive, and the parser that builds it from the
bytes the server reads off a connection.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    Raw bytes                  HTTPRequest                   Handlers
    from socket   ──parse──►    dataclass    ──dispatch──►   (request,
        │                           │                         response,
        │                           │                         next)
    b"GET /..."              HTTPRequest(
                               method="GET",
                               path="/users/alice",
                               headers=Headers(...),
                               ...)
                                    │
                                    └── router binds params per matched
                                        route entry: {"user": "alice"}

=============================================================================
WHAT MAY CHANGE DURING DISPATCH
=============================================================================

Nothing a handler can touch. Method, path, headers and body are fixed when
the request is parsed. The only state written later is the route match
(``params`` and ``remaining_path``), and only the router writes it, once
per matched route entry, before that entry's handlers run.

=============================================================================
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Union
from urllib.parse import parse_qs, urlparse, unquote
import re

from ..errors import BodyReadError, HTTPParseError
from .headers import Headers


_EMPTY_PARAMS: Mapping[str, str] = MappingProxyType({})


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Upper-case HTTP method (GET, POST, PUT, DELETE, ...)
        path:           Decoded request path WITHOUT query string
        original_url:   Request target exactly as the client sent it
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Case-insensitive Headers mapping
        query_params:   "?a=1&a=2&b=3" → {"a": ["1", "2"], "b": ["3"]}
        client_address: (ip, port) of the peer
        body_reader:    Optional callable producing the body on first read

    The body is read through ``read()`` / ``read_string()``; it is pulled
    from ``body_reader`` the first time and cached afterwards.

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Union[Headers, Dict[str, str]] = field(default_factory=Headers)
    query_params: Dict[str, list] = field(default_factory=dict)
    body: Optional[bytes] = None
    body_reader: Optional[Callable[[], bytes]] = field(default=None, repr=False)
    client_address: tuple = ("", 0)
    original_url: str = ""

    # Route match, written by the router only
    _params: Mapping[str, str] = field(default_factory=lambda: _EMPTY_PARAMS, init=False, repr=False)
    _remaining_path: str = field(default="/", init=False, repr=False)

    def __post_init__(self):
        self.method = self.method.upper()
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)
        if not self.original_url:
            self.original_url = self.path

    # =========================================================================
    # ROUTE MATCH
    # =========================================================================

    @property
    def params(self) -> Mapping[str, str]:
        """
        Path parameters of the route entry currently running.

        Route "/users/:user" with "/users/alice" → {"user": "alice"}.
        Read-only: handlers cannot add or change parameters.
        """
        return self._params

    @property
    def remaining_path(self) -> str:
        """
        Part of the path below a prefix mount.

        For middleware mounted at "/static", a request for
        "/static/css/site.css" has remaining_path "/css/site.css".
        Exact routes see "/".
        """
        return self._remaining_path

    def _bind_match(self, params: Mapping[str, str], remaining_path: str = "/") -> None:
        self._params = MappingProxyType(dict(params))
        self._remaining_path = remaining_path

    # =========================================================================
    # BODY
    # =========================================================================

    def read(self) -> bytes:
        """
        Read the request body.

        Raises:
            BodyReadError: If the body source fails.
        """
        if self.body is None:
            if self.body_reader is None:
                self.body = b""
            else:
                try:
                    self.body = self.body_reader()
                except OSError as e:
                    raise BodyReadError(f"Failed to read request body: {e}") from e
        return self.body

    def read_string(self, encoding: str = "utf-8") -> str:
        """
        Read the request body as text.

        Raises:
            BodyReadError: If the body cannot be read or decoded.
        """
        data = self.read()
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as e:
            raise BodyReadError(f"Request body is not valid {encoding}: {e}") from e

    # =========================================================================
    # HEADER SHORTCUTS
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("text/plain; charset=utf-8" → "text/plain")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection should stay open after this request.

        HTTP/1.1 keeps alive unless "Connection: close";
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name, default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or default."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> list:
        return self.query_params.get(name, [])


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Size check            too large → HTTPParseError(413)
        2. Find \\r\\n\\r\\n         missing → HTTPParseError(400)
        3. Request line          METHOD SP TARGET SP VERSION
                                 bad method → 405, bad version → 505
        4. Headers               "Name: Value", case-insensitive
        5. Body                  exactly Content-Length bytes

    ==========================================================================
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data.

        Args:
            data: Raw request bytes (headers and complete body).
            client_address: Peer (ip, port) for logging.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
            original_url=target,
        )

    def _parse_request_line(self, line: str) -> tuple:
        """
        Parse "GET /users/alice?x=1 HTTP/1.1".

        Returns:
            (method, target, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parsed = urlparse(target)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        # Decoded ".." would let a path escape a static mount
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return method, target, path, query_params, version

    def _parse_headers(self, lines: list) -> Headers:
        """
        Parse header lines.

        Continuation lines (leading whitespace) extend the previous header;
        repeated headers are joined with ", ". Malformed lines are skipped.
        """
        headers = Headers()
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] = headers[current_name] + " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip()
            current_name = name
            headers.add(name, value.strip())

        return headers


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
