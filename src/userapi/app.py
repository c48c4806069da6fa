"""
Application factory: an HTTPServer wired to the user API.
"""

from typing import Optional

from .config import ServerConfig
from .server import HTTPServer
from .http import Router
from .middleware import LoggingMiddleware
from .api import UserApi, UserStore


def create_app(
    config: Optional[ServerConfig] = None,
    store: Optional[UserStore] = None,
    access_log: bool = True,
) -> HTTPServer:
    """
    Build a ready-to-run server.

    Args:
        config: Server configuration; defaults to ServerConfig().
        store: User store to serve; defaults to a freshly seeded one.
        access_log: Install LoggingMiddleware.

    Example:
        app = create_app(ServerConfig(port=3000))
        app.run()
    """
    config = config or ServerConfig()
    api = UserApi(
        store if store is not None else UserStore.seeded(),
        server_name=config.server_name,
        version=config.version,
    )

    server = HTTPServer(config, router=api.register(Router()))
    if access_log:
        server.use(LoggingMiddleware(log_format=config.log_format))
    server.api = api
    return server
