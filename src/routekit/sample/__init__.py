"""
Sample application showing every router feature.

    from routekit.sample import create_router
    HTTPServer(create_router()).run()
"""

from .app import ARTICLES, NOT_FOUND_MESSAGE, create_router


__all__ = [
    "ARTICLES",
    "NOT_FOUND_MESSAGE",
    "create_router",
]
