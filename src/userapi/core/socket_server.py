"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop.

    socket() → bind() → listen() → accept() ... accept() → close()
                                      │
                                      └─ each client socket is wrapped in a
                                         Connection and handed to a callback

accept() runs with a one-second timeout so the loop can notice a
shutdown request between connections; a timeout there is not an error.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP server.

    Usage:
        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        After bind() this reports the real port, which differs from the
        configured one when port 0 asked the OS to choose.
        """
        if self._socket is not None:
            port = self._socket.getsockname()[1]
            return (self.config.host, port)
        return (self.config.host, self.config.port)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready.wait(timeout)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebinding right after a restart must not fail with EADDRINUSE
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses are small; send them immediately
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """
        Turn SIGTERM and SIGINT into a graceful shutdown.

        signal.signal() only works on the main thread; when the server is
        started from a worker thread (as the tests do) the process keeps
        its existing handlers.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and start listening.

        Returns:
            The bound address (see address).

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()
        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        return self.address

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Binds first unless bind() was already called.

        Args:
            connection_handler: Called with each accepted Connection.
        """
        if self._socket is None:
            self.bind()

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # poll the running flag
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop the accept loop. Idempotent and callable from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self._ready.clear()
        logger.info("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown() is called. Returns False on timeout."""
        return self._shutdown_event.wait(timeout)
