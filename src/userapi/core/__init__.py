"""
=============================================================================
CORE NETWORKING
=============================================================================

    socket_server.py  listening socket and accept loop
    connection.py     per-client buffering, request framing, graceful close
    thread_pool.py    worker threads that process accepted connections

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLargeError
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLargeError",
    "ThreadPool",
]
