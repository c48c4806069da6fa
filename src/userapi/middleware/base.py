"""
=============================================================================
MIDDLEWARE BASE
=============================================================================

Middleware wraps the request handler to add behavior around every request
without touching the route handlers themselves:

    request ──► Logging ──► ... ──► router.handle ──┐
                                                     │
    response ◄── Logging ◄── ... ◄───────────────────┘

Each middleware receives the request and a `next` callable. It may act
before calling next, after it, or return early without calling it.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)

NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class Timing(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Handled-By", "userapi")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming HTTP request
            next: The rest of the chain; call it to continue

        Returns:
            The response from next(), possibly modified, or a new one.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered middleware chain. The first middleware added is the outermost.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append a middleware. Returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around `handler`.

        Given [A, B] the result calls A, which calls B, which calls handler.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
