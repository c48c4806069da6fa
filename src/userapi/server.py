"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the layers together:

    SocketServer ──accept──► ThreadPool ──► _process_connection (worker)
                                                  │
                                   Connection.read_request()
                                                  │
                                   RequestParser.parse()
                                                  │
                             MiddlewarePipeline ──► Router.handle()
                                                  │
                                   HTTPResponse.to_bytes() ──► socket

Failures before a handler runs (timeouts, oversized or malformed requests)
are answered with an error envelope and the connection is closed. An
exception escaping a handler is logged with its traceback and answered
with a 500 envelope; the connection and the process carry on.

=============================================================================
"""

import logging
import threading
from typing import Optional, Callable, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool, RequestTooLargeError
from .core.connection import ConnectionState
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router,
)
from .middleware import MiddlewarePipeline, Middleware
from .api.envelope import error_response


logger = logging.getLogger(__name__)

INTERNAL_ERROR = "internal server error"


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 server.

    Usage:
        server = HTTPServer(ServerConfig(port=3000))
        server.use(LoggingMiddleware())
        UserApi(UserStore.seeded()).register(server.router)
        server.run()          # blocks until stop() or SIGINT/SIGTERM
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        """
        Args:
            config: Server configuration; defaults to ServerConfig().
            router: Router to dispatch to; a new empty one if omitted.

        Raises:
            ValueError: If the configuration does not validate.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = router or Router()
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; the first one added runs outermost."""
        self._middleware.add(middleware)
        self._handler = None
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once the server is listening."""
        return self._socket_server.address

    @property
    def url(self) -> str:
        host, port = self.address
        return f"http://{host}:{port}"

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Run one request through middleware and router, without a socket.

        Exceptions from handlers propagate; _process_connection is what
        turns them into a 500.
        """
        if self._handler is None:
            self._handler = self._middleware.wrap(self._router.handle)
        return self._handler(request)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, setup_logging: bool = True):
        """
        Bind, log the listening address, and serve until stopped (blocking).

        Args:
            setup_logging: Configure the root logger from the config first.

        Raises:
            OSError: If the address cannot be bound.
        """
        if setup_logging:
            self._setup_logging()

        self._handler = self._middleware.wrap(self._router.handle)
        self._socket_server.bind()
        self._thread_pool.start()
        self._running = True

        logger.info(f"Server running at {self.url}")
        self._router.log_routes()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is accepting. Used by tests and embedders."""
        return self._socket_server.wait_until_ready(timeout)

    def stop(self):
        """Ask a running server to shut down. Safe from any thread."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("userapi").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.keep_alive_timeout + 1)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand an accepted connection to the pool, or refuse it with 503."""
        if not self._thread_pool.submit(self._process_connection, args=(conn,), block=False):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (runs on a worker thread).

            read → parse → handle → send → (keep-alive? read again : close)
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    request = self._parser.parse(raw_request, conn.address)

                    conn.state = ConnectionState.PROCESSING
                    response = self._dispatch(conn, request)

                    keep_alive = request.is_keep_alive and self.config.keep_alive
                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if not conn.send_response(response.to_bytes(self.config.server_header)):
                        break
                    if not keep_alive or response.headers.get("Connection") == "close":
                        break

                    conn.set_keep_alive()

                except RequestTooLargeError as e:
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break
                except HTTPParseError as e:
                    # bad framing from read_request or a bad request from the parser
                    self._send_error(conn, e.status_code, str(e))
                    break
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "request timeout")
                    break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self.handle(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error on {request.method} {request.path}: {e}")
            return error_response(INTERNAL_ERROR, HTTPStatus.INTERNAL_SERVER_ERROR)

    def _send_error(self, conn: Connection, status: int, message: str):
        """Send an error envelope and ask the client to close."""
        response = error_response(message, status)
        response.set_header("Connection", "close")
        conn.send_response(response.to_bytes(self.config.server_header))


def serve_in_thread(server: HTTPServer, timeout: float = 5.0) -> threading.Thread:
    """
    Start `server.run()` on a daemon thread and wait until it accepts.

    Logging is left as the caller configured it.

    Raises:
        RuntimeError: If the server is not listening within `timeout`.
    """
    thread = threading.Thread(
        target=server.run, kwargs={"setup_logging": False}, name="userapi-server", daemon=True
    )
    thread.start()
    if not server.wait_until_ready(timeout):
        raise RuntimeError("Server did not start in time")
    return thread
