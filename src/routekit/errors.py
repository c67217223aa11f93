"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Exceptions and error values raised or carried while dispatching a request.

=============================================================================
WHERE EACH ERROR IS HANDLED
=============================================================================

    ┌──────────────────────────┬──────────────────────────────────────────┐
    │ Error                    │ Recovered at                             │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │ HandlerError (+ subs)    │ the handler that called the collaborator │
    │                          │ (caught, logged, response left partial)  │
    │ ApplicationError         │ the dispatch boundary: assigned to       │
    │                          │ response.error, routed to error handlers │
    │ HTTPParseError           │ the server, before dispatch starts       │
    │ "no route matched"       │ not an exception: the fallback path      │
    └──────────────────────────┴──────────────────────────────────────────┘

Handlers are expected to catch HandlerError themselves:

    @router.get("/hello")
    def hello(request, response, next):
        try:
            response.status(HTTPStatus.OK).send("Hello").end()
        except HandlerError as e:
            logger.error(f"Failed to send response {e}")

=============================================================================
"""

from typing import Any, Dict, Optional


class RoutekitError(Exception):
    """Base class for all routekit exceptions."""


# =============================================================================
# COLLABORATOR FAILURES
# =============================================================================

class HandlerError(RoutekitError):
    """
    A collaborator call made by a handler failed.

    Covers sending, rendering, redirecting and reading the body.
    """


class ResponseFinalizedError(HandlerError):
    """
    Write or end attempted on a response that was already ended.

    The response stays exactly as it was when end() was first called.
    """


class RequestCancelledError(HandlerError):
    """
    Write attempted on a response whose request was cancelled.

    Raised after the server gave up on the request (timeout, client gone).
    """


class RenderError(HandlerError):
    """
    Template rendering failed.

    Attributes:
        template: Name of the template that failed to render.
    """

    def __init__(self, message: str, template: Optional[str] = None):
        super().__init__(message)
        self.template = template


class BodyReadError(HandlerError):
    """The request body could not be read or decoded."""


# =============================================================================
# APPLICATION ERRORS
# =============================================================================

class ApplicationError(RoutekitError):
    """
    Domain-level failure signalled by a handler.

    Handlers do not raise this; they assign it to ``response.error`` and
    call ``next()``, and the router hands the request to the error handlers.

        response.error = ApplicationError("RouterTestDomain", 1)

    Attributes:
        domain: Error domain, a short namespace string.
        code: Numeric code inside the domain.
        info: Free-form details for diagnostics.
    """

    def __init__(self, domain: str, code: int = 0, info: Optional[Dict[str, Any]] = None):
        self.domain = domain
        self.code = code
        self.info = dict(info or {})
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"Error Domain={self.domain} Code={self.code}"
        if self.info:
            details = ", ".join(f"{k}={v}" for k, v in self.info.items())
            text += f" ({details})"
        return text

    def __repr__(self) -> str:
        return f"ApplicationError(domain={self.domain!r}, code={self.code!r})"


# =============================================================================
# PROTOCOL ERRORS
# =============================================================================

class HTTPParseError(RoutekitError):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code the server should answer with:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown/unsupported method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code
