"""
=============================================================================
HTTP LAYER
=============================================================================

Request and response objects, path matching, and the router.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py      raw bytes → HTTPRequest (headers, lazy body, params) │
    │ response.py     RouterResponse: status, headers, append-only body   │
    │ headers.py      case-insensitive header mapping                     │
    │ matcher.py      "/users/:user" pattern compilation and matching     │
    │ router.py       ordered route entries, error/fallback dispatch      │
    │ status_codes.py HTTPStatus with reason phrases                      │
    │ mime_types.py   file extension → Content-Type                       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .headers import Headers
from .request import HTTPRequest, RequestParser, parse_request
from .response import DispatchState, RouterResponse, plain_response
from .matcher import PathMatch, PathPattern
from .router import Router, RouteEntry
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type


__all__ = [
    "Headers",
    "HTTPRequest",
    "RequestParser",
    "parse_request",
    "DispatchState",
    "RouterResponse",
    "plain_response",
    "PathMatch",
    "PathPattern",
    "Router",
    "RouteEntry",
    "HTTPStatus",
    "get_mime_type",
    "get_content_type",
]
