"""
Not-found handler, registered with ``router.fallback(...)``.

The router runs the fallback only when no route set a status. The root
path is left alone by default so an application without a "/" route does
not answer its landing page with 404; the router's finalize step still
ends that response.
"""

import logging

from ..errors import HandlerError
from ..http.request import HTTPRequest
from ..http.response import RouterResponse
from ..http.status_codes import HTTPStatus
from ..middleware.base import Continuation, RouterMiddleware


logger = logging.getLogger(__name__)

ROOT_PATHS = ("", "/")


class NotFoundHandler(RouterMiddleware):
    """
    Answer 404 with a fixed message.

    Args:
        message: Body of the 404 response.
        suppress_root: Skip requests for "/" (and the empty path).
    """

    def __init__(self, message: str = "Route not found", suppress_root: bool = True):
        self.message = message
        self.suppress_root = suppress_root

    def handle(self, request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        if self.suppress_root and request.path in ROOT_PATHS:
            next()
            return

        try:
            response.status(HTTPStatus.NOT_FOUND)
            response.headers["Content-Type"] = "text/plain; charset=utf-8"
            response.send(self.message).end()
        except HandlerError as e:
            logger.error(f"Failed to send response {e}")
        next()
