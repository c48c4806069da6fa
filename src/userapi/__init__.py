"""
=============================================================================
USERAPI - In-memory user API on a from-scratch HTTP/1.1 server
=============================================================================

    userapi/
    ├── __main__.py      CLI (python -m userapi)
    ├── app.py           create_app(): server + routes + middleware
    ├── server.py        HTTPServer: connection loop and dispatch
    ├── config.py        ServerConfig
    ├── core/            sockets, connections, thread pool
    ├── http/            request parsing, responses, routing
    ├── middleware/      access logging
    └── api/             users, store, envelope, route handlers

Quick start:

    from userapi import create_app, ServerConfig
    create_app(ServerConfig(port=3000)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, serve_in_thread
from .app import create_app
from .api import UserApi, UserStore, User, ApiResponse

__all__ = [
    "__version__",
    "ServerConfig",
    "HTTPServer",
    "serve_in_thread",
    "create_app",
    "UserApi",
    "UserStore",
    "User",
    "ApiResponse",
]
