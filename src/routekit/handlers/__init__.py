"""
Reusable handlers: static files and the not-found fallback.
"""

from .static import StaticFileServer
from .fallback import NotFoundHandler


__all__ = [
    "StaticFileServer",
    "NotFoundHandler",
]
