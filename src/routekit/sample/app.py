"""
=============================================================================
SAMPLE APPLICATION
=============================================================================

A small application exercising every router feature.

    ┌─────────┬───────────────┬──────────────────────────────────────────┐
    │ Method  │ Path          │ Behavior                                 │
    ├─────────┼───────────────┼──────────────────────────────────────────┤
    │ ALL     │ /             │ log Authorization header, continue       │
    │ GET     │ /static/...   │ files from the public directory          │
    │ GET     │ /hello        │ "Hello <name>, from Kitura!"             │
    │ POST    │ /hello        │ store request body as name               │
    │ PUT     │ /hello        │ store request body as name               │
    │ DELETE  │ /hello        │ forget the name                          │
    │ GET     │ /error        │ set 500 + error, error handler answers   │
    │ GET     │ /redir        │ 302 to http://www.ibm.com                │
    │ GET     │ /users/:user  │ snippet naming the user, as plain text   │
    │ GET     │ /multi        │ two handlers, then a second registration │
    │ GET     │ /document     │ rendered "document" template             │
    │ (error) │               │ "Caught the error: ..."                  │
    │ (none)  │               │ 404 "Route not found in Sample ..."      │
    └─────────┴───────────────┴──────────────────────────────────────────┘

Every handler that writes catches HandlerError (already ended, cancelled,
render failure) and logs it rather than letting it escape.

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union
import logging

from ..errors import ApplicationError, HandlerError
from ..handlers import NotFoundHandler, StaticFileServer
from ..http import HTTPRequest, HTTPStatus, Router, RouterResponse
from ..middleware import BasicAuthMiddleware, Continuation
from ..state import NameStore
from ..templating import JinjaTemplateEngine


logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_TEMPLATE_DIR = PACKAGE_DIR / "templates"
DEFAULT_STATIC_DIR = PACKAGE_DIR / "public"

TEXT_PLAIN = "text/plain; charset=utf-8"
NOT_FOUND_MESSAGE = "Route not found in Sample application!"
REDIRECT_TARGET = "http://www.ibm.com"

ARTICLES = [
    {"title": "Migrating from OCUnit to XCTest", "author": "Kyle Fuller"},
    {"title": "Memory Management with ARC", "author": "Kyle Fuller"},
]


def _send_text(
    response: RouterResponse,
    text: str,
    status: Optional[HTTPStatus] = None,
) -> None:
    """Write a text/plain body and end. Logs instead of raising."""
    try:
        response.headers["Content-Type"] = TEXT_PLAIN
        if status is not None:
            response.status(status)
        response.send(text).end()
    except HandlerError as e:
        logger.error(f"Failed to send response {e}")


def create_router(
    store: Optional[NameStore] = None,
    template_dir: Optional[Union[str, Path]] = None,
    static_dir: Optional[Union[str, Path]] = None,
    suppress_root_not_found: bool = True,
    static_url_prefix: str = "/static",
    router: Optional[Router] = None,
) -> Router:
    """
    Build the sample router.

    Args:
        store: Shared name for the /hello routes; a fresh one when omitted.
        template_dir: Templates for /document; the bundled ones when omitted.
        static_dir: Files served under /static; the bundled ones when omitted.
        suppress_root_not_found: Leave "/" out of the 404 fallback.
        static_url_prefix: Mount point of the static files.
        router: Router to register on, for callers that add their own
                entries (such as access logging) first.

    Returns:
        The router with every sample route registered.
    """
    store = store if store is not None else NameStore()
    router = router if router is not None else Router()

    router.set_default_template_engine(
        JinjaTemplateEngine(template_dir or DEFAULT_TEMPLATE_DIR)
    )

    router.all(BasicAuthMiddleware())
    router.use(static_url_prefix, StaticFileServer(static_dir or DEFAULT_STATIC_DIR))

    # ─────────────────────────────────────────────────────────────────────
    # /hello
    # ─────────────────────────────────────────────────────────────────────

    @router.get("/hello")
    def get_hello(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        name = store.get_or("World")
        _send_text(response, f"Hello {name}, from Kitura!", HTTPStatus.OK)
        next()

    def store_body(verb: str):
        def handler(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
            try:
                store.set(request.read_string())
            except HandlerError as e:
                logger.error(f"Failed to read request body {e}")
            _send_text(response, f"Got a {verb} request", HTTPStatus.OK)
            next()

        handler.__name__ = f"{verb.lower()}_hello"
        return handler

    router.post("/hello", store_body("POST"))
    router.put("/hello", store_body("PUT"))

    @router.delete("/hello")
    def delete_hello(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        store.clear()
        _send_text(response, "Got a DELETE request", HTTPStatus.OK)
        next()

    # ─────────────────────────────────────────────────────────────────────
    # error, redirect, params
    # ─────────────────────────────────────────────────────────────────────

    @router.get("/error")
    def raise_error(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        logger.error("Example of error being set")
        try:
            response.status(HTTPStatus.INTERNAL_SERVER_ERROR)
        except HandlerError as e:
            logger.error(f"Failed to set status {e}")
        response.error = ApplicationError("RouterTestDomain", 1)
        next()

    @router.get("/redir")
    def redirect(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        try:
            response.redirect(REDIRECT_TARGET)
        except HandlerError as e:
            logger.error(f"Failed to redirect {e}")
        next()

    @router.get("/users/:user")
    def user(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        p1 = request.params.get("user", "(nil)")
        try:
            response.headers["Content-Type"] = TEXT_PLAIN
            response.status(HTTPStatus.OK)
            response.send(
                f"<!DOCTYPE html><html><body><b>User:</b> {p1}</body></html>\n\n"
            ).end()
        except HandlerError as e:
            logger.error(f"Failed to send response {e}")
        next()

    # ─────────────────────────────────────────────────────────────────────
    # /multi: one entry with two handlers, then a second entry
    # ─────────────────────────────────────────────────────────────────────

    def multi_first(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        try:
            response.headers["Content-Type"] = TEXT_PLAIN
            response.status(HTTPStatus.OK).send("I'm here!\n")
        except HandlerError as e:
            logger.error(f"Failed to send response {e}")
        next()

    def multi_second(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        try:
            response.send("Me too!\n")
        except HandlerError as e:
            logger.error(f"Failed to send response {e}")
        next()

    def multi_after(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        try:
            response.status(HTTPStatus.OK).send("I come afterward..\n").end()
        except HandlerError as e:
            logger.error(f"Failed to send response {e}")
        next()

    router.get("/multi", multi_first, multi_second)
    router.get("/multi", multi_after)

    # ─────────────────────────────────────────────────────────────────────
    # error handler
    # ─────────────────────────────────────────────────────────────────────

    @router.error()
    def error_handler(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        message = f"Caught the error: {response.error}" if response.error is not None else "Unknown error"
        _send_text(response, message)
        next()

    # ─────────────────────────────────────────────────────────────────────
    # templating
    # ─────────────────────────────────────────────────────────────────────

    @router.get("/document")
    def document(request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        try:
            response.render("document", {"articles": ARTICLES}).end()
        except HandlerError as e:
            logger.error(f"Failed to render template {e}")
        finally:
            next()

    router.fallback(NotFoundHandler(NOT_FOUND_MESSAGE, suppress_root=suppress_root_not_found))

    return router
