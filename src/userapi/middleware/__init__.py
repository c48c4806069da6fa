"""
Middleware that wraps every request on its way to the router.
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
