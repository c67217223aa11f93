"""
=============================================================================
HANDLERS, CONTINUATIONS AND THE CHAIN EXECUTOR
=============================================================================

Defines the handler contract shared by route handlers and middleware, and
the executor that threads a continuation through one route entry's
handlers.

=============================================================================
CONTINUATION-PASSING HANDLERS
=============================================================================

Every handler has the same shape:

    def handler(request, response, next) -> None

There is no return value. A handler works on the shared response and then
either calls ``next()`` to let the following handler run, or returns
without calling it to stop dispatch for this request.

    ┌─────────────────────────────────────────────────────────────────────┐
    │              ONE ROUTE ENTRY: GET /multi  [h1, h2]                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   chain.run()                                                       │
    │      │                                                              │
    │      ▼                                                              │
    │   h1(request, response, next₁)                                      │
    │      │  response.send("I'm here!\\n")                                │
    │      │  next₁() ─────────────┐                                      │
    │      │                       ▼                                      │
    │      │            h2(request, response, next₂)                      │
    │      │               │  response.send("Me too!\\n")                  │
    │      │               │  next₂() ──────► done()                      │
    │      │               │                  (router: next matching      │
    │      │               │                   entry, if any)             │
    │      │◄──────────────┘                                              │
    │      ▼                                                              │
    │   (code after next₁() runs once everything downstream finished)    │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Because downstream work runs inside ``next()``, a middleware can do things
both before and after the rest of the request:

    class Timing(RouterMiddleware):
        def handle(self, request, response, next):
            start = time.time()
            next()
            logger.info(f"took {time.time() - start:.3f}s")

=============================================================================
SINGLE-USE CONTINUATIONS
=============================================================================

Each ``next`` is a fresh Continuation. The first call advances the chain;
any later call is logged as a warning and does nothing, so a buggy handler
cannot run the rest of the request twice.

A continuation also refuses to advance when ``response.error`` has been set
(normal dispatch stops, error handlers take over) or the response was
cancelled by the server.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Sequence, Tuple, Union
import logging

from ..http.request import HTTPRequest
from ..http.response import RouterResponse


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

Continuation = Callable[[], None]
HandlerFunc = Callable[[HTTPRequest, RouterResponse, Continuation], None]


class RouterMiddleware(ABC):
    """
    Base class for object-style handlers.

    Subclasses implement ``handle``; the instance itself is callable with the
    handler signature, so it can be registered anywhere a function can:

        class BasicAuthMiddleware(RouterMiddleware):
            def handle(self, request, response, next):
                logger.info(f"Authorization: {request.headers.get('Authorization')}")
                next()

        router.all(BasicAuthMiddleware())
    """

    @abstractmethod
    def handle(self, request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        """
        Process the request.

        Call ``next()`` to continue, or return without calling it to stop.
        """

    def __call__(self, request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        self.handle(request, response, next)

    @property
    def name(self) -> str:
        return self.__class__.__name__


Handler = Union[HandlerFunc, RouterMiddleware]


def handler_name(handler: Handler) -> str:
    """Readable name of a handler for log lines."""
    if isinstance(handler, RouterMiddleware):
        return handler.name
    return getattr(handler, "__name__", None) or repr(handler)


def check_handlers(handlers: Sequence[Handler]) -> Tuple[Handler, ...]:
    """
    Validate handlers at registration time.

    Raises:
        TypeError: If any handler is not callable.
        ValueError: If no handler was given.
    """
    if not handlers:
        raise ValueError("At least one handler is required")
    for handler in handlers:
        if not callable(handler):
            raise TypeError(f"Handler {handler!r} is not callable")
    return tuple(handlers)


class SingleUseContinuation:
    """
    A ``next`` callable that advances at most once.

    Args:
        step: What calling next() does the first time.
        owner: Name of the handler that received it (for warnings).
    """

    def __init__(self, step: Callable[[], None], owner: str):
        self._step = step
        self._owner = owner
        self._called = False

    @property
    def called(self) -> bool:
        return self._called

    def __call__(self) -> None:
        if self._called:
            logger.warning(f"next() called more than once by {self._owner}; ignoring")
            return
        self._called = True
        self._step()


class HandlerChain:
    """
    Runs an ordered list of handlers with a continuation threaded through.

    Handlers run sequentially and synchronously in list order. When the last
    handler calls its continuation, ``done`` is invoked.

    Args:
        handlers: Handlers to run, in order.
        stop_on_error: Refuse to advance once ``response.error`` is set.
                       Error handler chains run with this off.
    """

    def __init__(self, handlers: Sequence[Handler], stop_on_error: bool = True):
        self.handlers: Tuple[Handler, ...] = tuple(handlers)
        self.stop_on_error = stop_on_error

    def run(
        self,
        request: HTTPRequest,
        response: RouterResponse,
        done: Callable[[], None],
    ) -> None:
        """Start the chain at its first handler."""
        self._invoke(0, request, response, done)

    def _invoke(
        self,
        index: int,
        request: HTTPRequest,
        response: RouterResponse,
        done: Callable[[], None],
    ) -> None:
        if index == len(self.handlers):
            done()
            return

        handler = self.handlers[index]
        name = handler_name(handler)
        next_step = SingleUseContinuation(
            lambda: self._advance(index + 1, request, response, done),
            owner=name,
        )

        # ─────────────────────────────────────────────────────────────────
        # An exception escaping a handler must not abort the request.
        # It becomes the response error so error handlers answer instead.
        # ─────────────────────────────────────────────────────────────────
        try:
            handler(request, response, next_step)
        except Exception as e:
            logger.exception(f"Unhandled error in handler {name}: {e}")
            if response.error is None:
                response.error = e

    def _advance(
        self,
        index: int,
        request: HTTPRequest,
        response: RouterResponse,
        done: Callable[[], None],
    ) -> None:
        if response.cancelled:
            logger.debug("Response cancelled; not advancing")
            return
        if self.stop_on_error and response.error is not None:
            logger.debug(f"Response error set ({response.error}); stopping dispatch")
            return
        self._invoke(index, request, response, done)

    def __len__(self) -> int:
        return len(self.handlers)

    def __iter__(self):
        return iter(self.handlers)
