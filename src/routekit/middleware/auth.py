"""
Authorization logging middleware.

Logs the Authorization header of every request and lets it through. A real
check would look the credentials up and, on failure, set
``response.error = ApplicationError("AuthFailure", 1)`` before calling
``next()`` so the error handlers answer.
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import RouterResponse
from .base import Continuation, RouterMiddleware


logger = logging.getLogger(__name__)


class BasicAuthMiddleware(RouterMiddleware):
    """Log the Authorization header, then continue."""

    def handle(self, request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        auth_string = request.headers.get("Authorization")
        logger.info(f"Authorization: {auth_string}")
        next()
