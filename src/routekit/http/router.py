"""
=============================================================================
ROUTER
=============================================================================

Ordered route entries with continuation-style handler chains, an error
dispatcher and a fallback ("not found") handler.

=============================================================================
DISPATCH FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        GET /multi                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   Registered entries (registration order IS precedence):            │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │ 0  ALL  /        (mount)  [BasicAuthMiddleware]   ← match   │   │
    │   │ 1  ALL  /static  (mount)  [StaticFileServer]                │   │
    │   │ 2  GET  /hello            [hello]                           │   │
    │   │ 3  GET  /multi            [im_here, me_too]       ← match   │   │
    │   │ 4  GET  /multi            [come_afterward]        ← match   │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │                                                                     │
    │   entry 0 ──next()──► entry 3: h1 ──next()──► h2 ──next()──►        │
    │   entry 4 ──next()──► (no more entries)                             │
    │        │                                                            │
    │        ▼                                                            │
    │   response.error set?  ── yes ──► error handlers (once)             │
    │        │ no                                                         │
    │        ▼                                                            │
    │   status still unset?  ── yes ──► fallback handlers                 │
    │        │                                                            │
    │        ▼                                                            │
    │   not ended yet?       ── yes ──► end() (404 if status unset)       │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

A handler that does not call next() stops the walk over entries; the
post-processing steps (error, fallback, finalize) still run.

=============================================================================
REGISTRATION API
=============================================================================

Direct registration, one or more handlers per entry:

    router.get("/hello", hello)
    router.get("/multi", im_here, me_too)
    router.all(BasicAuthMiddleware())          # every method, every path
    router.use("/static", StaticFileServer("./public"))
    router.error(error_handler)
    router.fallback(NotFoundHandler("Route not found"))

Decorator registration:

    @router.get("/users/:user")
    def user(request, response, next):
        response.send(request.params["user"]).end()

=============================================================================
UNENDED RESPONSES
=============================================================================

If no handler ends the response, the router ends it after post-processing
(status 404 when nothing set a status, 500 when an error went unhandled).
This keeps every request answered even when handlers forget ``end()``.
Disable with ``Router(finalize_unended=False)``; the server's per-request
timeout is then the only safety net.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple
import logging

from ..errors import RequestCancelledError
from ..middleware.base import Handler, HandlerChain, check_handlers, handler_name
from .matcher import PathMatch, PathPattern
from .request import HTTPRequest
from .response import RouterResponse
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


ALL_METHODS = "ALL"


@dataclass(frozen=True)
class RouteEntry:
    """
    One registration: method pattern, path pattern, handler chain.

    Attributes:
        method: Upper-case method, or None for every method.
        path: Compiled path pattern (exact or prefix mount).
        chain: Handlers run for a matching request.
    """

    method: Optional[str]
    path: PathPattern
    chain: HandlerChain

    def match(self, method: str, path: str) -> Optional[PathMatch]:
        if self.method is not None and self.method != method.upper():
            return None
        return self.path.match(path)

    def describe(self) -> str:
        method = self.method or ALL_METHODS
        mount = " (mount)" if self.path.prefix else ""
        names = ", ".join(handler_name(h) for h in self.chain)
        return f"{method:8} {self.path.pattern}{mount} [{names}]"


class Router:
    """
    HTTP request router with ordered, continuation-chained route entries.

    The entry list is built at startup and only read during dispatch, so
    dispatching needs no locking. Registering routes while requests are
    being served is not supported.
    """

    def __init__(self, finalize_unended: bool = True):
        self.finalize_unended = finalize_unended
        self.template_engine: Optional[Any] = None
        self._entries: List[RouteEntry] = []
        self._error_chain: Optional[HandlerChain] = None
        self._fallback_chain: Optional[HandlerChain] = None

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def register(
        self,
        method: Optional[str],
        path: str,
        *handlers: Handler,
        prefix: bool = False
    ) -> RouteEntry:
        """
        Append a route entry.

        Duplicate patterns are allowed; every matching entry is evaluated,
        in registration order.

        Args:
            method: HTTP method, or None / "ALL" for every method.
            path: Path pattern (e.g. "/users/:user").
            *handlers: Handlers run in order for a matching request.
            prefix: Mount the pattern as a prefix instead of an exact path.

        Returns:
            The registered RouteEntry.

        Raises:
            ValueError: Empty pattern, duplicate parameter names, no handlers.
            TypeError: A handler is not callable.
        """
        method = method.upper() if method else None
        if method == ALL_METHODS:
            method = None

        entry = RouteEntry(
            method=method,
            path=PathPattern(path, prefix=prefix),
            chain=HandlerChain(check_handlers(handlers)),
        )
        self._entries.append(entry)
        logger.debug(f"Registered route: {entry.describe()}")
        return entry

    def _add(self, method: Optional[str], path: str, handlers: Tuple[Handler, ...], prefix: bool = False):
        """
        Register directly, or return a decorator when no handler is given.

            router.get("/hello", hello)           # direct
            @router.get("/hello")                 # decorator
            def hello(request, response, next): ...
        """
        if handlers:
            return self.register(method, path, *handlers, prefix=prefix)

        def decorator(handler: Handler) -> Handler:
            self.register(method, path, handler, prefix=prefix)
            return handler
        return decorator

    @staticmethod
    def _split_path(args: Sequence[Any]) -> Tuple[Optional[str], Tuple[Handler, ...]]:
        if args and isinstance(args[0], str):
            return args[0], tuple(args[1:])
        return None, tuple(args)

    def all(self, *args: Any):
        """
        Register handlers for every method.

            router.all(middleware)            # every path (mount at "/")
            router.all("/ping", handler)      # exact path, any method
        """
        path, handlers = self._split_path(args)
        if path is None:
            return self._add(None, "/", handlers, prefix=True)
        return self._add(None, path, handlers)

    def use(self, *args: Any):
        """
        Mount middleware on a path prefix (every path if none is given).

            router.use("/static", StaticFileServer("./public"))
        """
        path, handlers = self._split_path(args)
        return self._add(None, path or "/", handlers, prefix=True)

    def get(self, path: str, *handlers: Handler):
        """Register a GET route."""
        return self._add("GET", path, handlers)

    def post(self, path: str, *handlers: Handler):
        """Register a POST route."""
        return self._add("POST", path, handlers)

    def put(self, path: str, *handlers: Handler):
        """Register a PUT route."""
        return self._add("PUT", path, handlers)

    def delete(self, path: str, *handlers: Handler):
        """Register a DELETE route."""
        return self._add("DELETE", path, handlers)

    def patch(self, path: str, *handlers: Handler):
        return self._add("PATCH", path, handlers)

    def head(self, path: str, *handlers: Handler):
        return self._add("HEAD", path, handlers)

    def options(self, path: str, *handlers: Handler):
        return self._add("OPTIONS", path, handlers)

    # =========================================================================
    # ERROR AND FALLBACK HANDLERS
    # =========================================================================

    def error(self, *handlers: Handler):
        """
        Set the error dispatcher.

        Runs once per request whose ``response.error`` is set when normal
        dispatch stops. Usable as a decorator.
        """
        if not handlers:
            def decorator(handler: Handler) -> Handler:
                self.error(handler)
                return handler
            return decorator

        self._error_chain = HandlerChain(check_handlers(handlers), stop_on_error=False)
        return self

    def fallback(self, *handlers: Handler):
        """
        Set the fallback handler.

        Runs when dispatch completes with no status set and no error.
        Usable as a decorator.
        """
        if not handlers:
            def decorator(handler: Handler) -> Handler:
                self.fallback(handler)
                return handler
            return decorator

        self._fallback_chain = HandlerChain(check_handlers(handlers))
        return self

    def set_default_template_engine(self, engine: Any) -> "Router":
        """Template engine used by ``response.render()``."""
        self.template_engine = engine
        return self

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def create_response(self) -> RouterResponse:
        return RouterResponse(template_engine=self.template_engine)

    def dispatch(self, request: HTTPRequest, response: Optional[RouterResponse] = None) -> RouterResponse:
        """
        Handle one request.

        Args:
            request: The parsed request.
            response: Response to fill in. A fresh one is created when
                      omitted; the server passes its own so it can cancel it.

        Returns:
            The response, ended unless it was cancelled or
            ``finalize_unended`` is off and no handler ended it.
        """
        if response is None:
            response = self.create_response()
        elif response.template_engine is None:
            response.template_engine = self.template_engine

        logger.debug(f"Dispatching {request.method} {request.path}")

        self._run_entries(0, request, response)

        if response.cancelled:
            logger.debug(f"{request.method} {request.path} cancelled during dispatch")
            return response

        # ─────────────────────────────────────────────────────────────────
        # POST-PROCESSING: error handlers, else fallback
        # ─────────────────────────────────────────────────────────────────
        errors_handled = False
        if response.error is not None:
            self._run_error_handlers(request, response)
            errors_handled = True
        elif response.status_code is None and not response.sent and self._fallback_chain is not None:
            self._fallback_chain.run(request, response, done=_noop)

        if response.error is not None and not errors_handled:
            self._run_error_handlers(request, response)

        self._finalize(request, response)
        return response

    def _run_entries(self, start: int, request: HTTPRequest, response: RouterResponse) -> None:
        """Run the first matching entry at or after ``start``."""
        for index in range(start, len(self._entries)):
            entry = self._entries[index]
            match = entry.match(request.method, request.path)
            if match is None:
                continue

            response._mark_matched()
            request._bind_match(match.params, match.remainder)
            entry.chain.run(
                request,
                response,
                done=lambda i=index: self._run_entries(i + 1, request, response),
            )
            return

    def _run_error_handlers(self, request: HTTPRequest, response: RouterResponse) -> None:
        if self._error_chain is None:
            logger.error(f"Unhandled error for {request.method} {request.path}: {response.error}")
            return

        # Only the error handlers produce the final body
        response._discard_body()
        self._error_chain.run(request, response, done=_noop)

    def _finalize(self, request: HTTPRequest, response: RouterResponse) -> None:
        if response.sent or response.cancelled or not self.finalize_unended:
            return

        try:
            if response.status_code is None:
                if response.error is not None:
                    response.status(HTTPStatus.INTERNAL_SERVER_ERROR)
                else:
                    response.status(HTTPStatus.NOT_FOUND)

            logger.debug(
                f"No handler ended {request.method} {request.path}; "
                f"ending with {response.status_code}"
            )
            response.end()
        except RequestCancelledError:
            logger.debug(f"{request.method} {request.path} cancelled before finalize")

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def entries(self) -> Tuple[RouteEntry, ...]:
        return tuple(self._entries)

    def describe_routes(self) -> List[str]:
        """
        One line per entry, in precedence order.

            ALL      / (mount) [BasicAuthMiddleware]
            GET      /hello [hello]
        """
        lines = [entry.describe() for entry in self._entries]
        if self._error_chain is not None:
            lines.append(f"{'ERROR':8} [{', '.join(handler_name(h) for h in self._error_chain)}]")
        if self._fallback_chain is not None:
            lines.append(f"{'FALLBACK':8} [{', '.join(handler_name(h) for h in self._fallback_chain)}]")
        return lines

    def __len__(self) -> int:
        return len(self._entries)


def _noop() -> None:
    pass
