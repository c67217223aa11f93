"""
Handler contract, chain executor and reusable middleware.
"""

from .base import (
    Continuation,
    Handler,
    HandlerChain,
    RouterMiddleware,
    SingleUseContinuation,
)
from .logging import LoggingMiddleware
from .auth import BasicAuthMiddleware


__all__ = [
    "Continuation",
    "Handler",
    "HandlerChain",
    "RouterMiddleware",
    "SingleUseContinuation",
    "LoggingMiddleware",
    "BasicAuthMiddleware",
]
