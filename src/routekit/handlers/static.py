"""
=============================================================================
STATIC FILE SERVER
=============================================================================

Middleware that serves files from a directory under a mounted prefix.

    router.use("/static", StaticFileServer("./public"))

=============================================================================
FLOW
=============================================================================

    GET /static/css/site.css
        │
        │  router binds remaining_path = "/css/site.css"
        ▼
    1. Method is not GET/HEAD?        → next()
    2. Resolve root_dir/css/site.css
    3. Escapes root_dir?              → 403 Forbidden, end
    4. Directory? use index.html      → missing: next()
    5. Not a file?                    → next()  (not-found signal: later
                                                 routes or the fallback
                                                 get a chance)
    6. If-None-Match == ETag?         → 304 Not Modified, end
    7. Send bytes with Content-Type, ETag, Last-Modified,
       Cache-Control, end

=============================================================================
SECURITY
=============================================================================

The resolved path (symlinks and ".." followed) must still be inside the
root directory; ``Path.relative_to`` raising ValueError means it is not.

=============================================================================
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Union
import logging

from ..errors import HandlerError
from ..http.mime_types import get_content_type
from ..http.request import HTTPRequest
from ..http.response import RouterResponse, format_http_date
from ..http.status_codes import HTTPStatus
from ..middleware.base import Continuation, RouterMiddleware


logger = logging.getLogger(__name__)


class StaticFileServer(RouterMiddleware):
    """
    Serve files below ``root_dir`` for a mounted prefix.

    Args:
        root_dir: Directory to serve; every served file must be inside it.
        index_file: File served for directory requests.
        cache_max_age: Cache-Control max-age in seconds.

    Raises:
        ValueError: If root_dir is not a directory.
    """

    def __init__(
        self,
        root_dir: Union[str, Path],
        index_file: str = "index.html",
        cache_max_age: int = 3600,
    ):
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.cache_max_age = cache_max_age

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    def handle(self, request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        if request.method not in ("GET", "HEAD") or response.sent:
            next()
            return

        relative = request.remaining_path.lstrip("/")
        full_path = (self.root_dir / relative).resolve()

        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {request.path}")
            self._send_status(response, HTTPStatus.FORBIDDEN, "Forbidden")
            return

        if full_path.is_dir():
            full_path = full_path / self.index_file

        if not full_path.is_file():
            next()
            return

        self._serve_file(full_path, request, response)

    def _serve_file(self, path: Path, request: HTTPRequest, response: RouterResponse) -> None:
        """
        Send one file.

        ETag is "<mtime>-<size>"; a matching If-None-Match gets 304 with no
        body. HEAD requests get the headers only.
        """
        try:
            stat = path.stat()
            etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'

            if request.headers.get("If-None-Match", "") == etag:
                response.status(HTTPStatus.NOT_MODIFIED)
                response.headers["ETag"] = etag
                response.end()
                return

            content = b"" if request.method == "HEAD" else path.read_bytes()
            mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

            response.status(HTTPStatus.OK)
            response.headers["Content-Type"] = get_content_type(path)
            response.headers["Content-Length"] = str(stat.st_size)
            response.headers["ETag"] = etag
            response.headers["Last-Modified"] = format_http_date(mtime)
            response.headers["Cache-Control"] = f"public, max-age={self.cache_max_age}"
            response.send(content).end()

        except PermissionError:
            self._send_status(response, HTTPStatus.FORBIDDEN, "Permission denied")
        except OSError as e:
            logger.error(f"Error serving file {path}: {e}")
            self._send_status(response, HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to read file")
        except HandlerError as e:
            logger.error(f"Failed to send static file {path}: {e}")

    @staticmethod
    def _send_status(response: RouterResponse, status: HTTPStatus, message: str) -> None:
        try:
            response.status(status)
            response.headers["Content-Type"] = "text/plain; charset=utf-8"
            response.send(message).end()
        except HandlerError as e:
            logger.error(f"Failed to send response {e}")
