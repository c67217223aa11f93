"""
=============================================================================
ROUTEKIT - Continuation-Style HTTP Router
=============================================================================

A small threaded HTTP/1.1 server with an ordered, continuation-chained
router in the style of Express and Kitura.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /users/alice                                                   │
    │        │                                                            │
    │        ▼                                                            │
    │  Router: walk entries in registration order                         │
    │        │   ALL  /          BasicAuthMiddleware ── next() ──┐        │
    │        │   GET  /hello     (no match)                      │        │
    │        │   GET  /users/:user  user(request, response, next)◄┘       │
    │        ▼                                                            │
    │  response.error set?  → error handlers                              │
    │  no status set?       → fallback (404)                              │
    │  not ended?           → finalize                                    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    routekit/
    ├── __main__.py          # CLI (python -m routekit)
    ├── server.py            # HTTPServer: sockets + pool + router
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # exception taxonomy
    ├── state.py             # NameStore, lock-guarded shared value
    ├── templating.py        # Jinja2 template engine
    ├── core/                # connection, accept loop, thread pool
    ├── http/                # request, response, matcher, router
    ├── middleware/          # handler chain, logging, auth
    ├── handlers/            # static files, not-found fallback
    └── sample/              # the sample application

=============================================================================
QUICK START
=============================================================================

    from routekit import HTTPServer, Router

    router = Router()

    @router.get("/hello")
    def hello(request, response, next):
        response.send("Hello World").end()
        next()

    HTTPServer(router).run()

=============================================================================
"""

__version__ = "1.0.0"

# http before middleware: the router module needs middleware.base, which
# needs the request and response modules already loaded.
from .errors import (
    ApplicationError,
    BodyReadError,
    HandlerError,
    HTTPParseError,
    RenderError,
    RequestCancelledError,
    ResponseFinalizedError,
    RoutekitError,
)
from .http import HTTPRequest, HTTPStatus, Router, RouterResponse
from .middleware import HandlerChain, LoggingMiddleware, RouterMiddleware
from .config import ServerConfig
from .server import HTTPServer, create_server
from .state import NameStore
from .templating import JinjaTemplateEngine, TemplateEngine


__all__ = [
    "__version__",
    "ApplicationError",
    "BodyReadError",
    "HandlerError",
    "HTTPParseError",
    "RenderError",
    "RequestCancelledError",
    "ResponseFinalizedError",
    "RoutekitError",
    "HTTPRequest",
    "HTTPStatus",
    "Router",
    "RouterResponse",
    "HandlerChain",
    "LoggingMiddleware",
    "RouterMiddleware",
    "ServerConfig",
    "HTTPServer",
    "create_server",
    "NameStore",
    "JinjaTemplateEngine",
    "TemplateEngine",
]
