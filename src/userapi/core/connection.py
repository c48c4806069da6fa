"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket.

TCP is a byte stream, not a message protocol: a single recv() may return
half a request line, or one request plus the start of the next. The
Connection buffers incoming bytes and cuts them into complete HTTP
requests:

    1. read until the header terminator \r\n\r\n appears
    2. read Content-Length more bytes for the body, or decode a
       "Transfer-Encoding: chunked" body
    3. hand back exactly one request; keep any surplus for the next call

A chunked body is reassembled here and handed on as an ordinary request
with a Content-Length header, so the parser only ever sees one framing:

    5;ext=1\r\n      ← chunk size in hex, extensions ignored
    hello\r\n
    0\r\n            ← last chunk
    Expires: x\r\n   ← optional trailer fields (dropped)
    \r\n

Connection states:

    NEW → READING → PROCESSING → WRITING → KEEP_ALIVE ─┐
              ▲                                         │
              └─────────────────────────────────────────┘
                                 │ (close / timeout)
                                 ▼
                          CLOSING → CLOSED

=============================================================================
"""

import re
import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)

CHUNK_SIZE_PATTERN = re.compile(rb"[0-9A-Fa-f]{1,16}")


class RequestTooLargeError(ValueError):
    """The buffered request grew past max_request_size."""


class ConnectionState(Enum):
    """Where a connection is in its lifecycle (used in debug logs)."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short random id used to correlate log lines.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0       # first request
    keep_alive_timeout: float = 5.0       # subsequent requests
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The request bytes (headers and body), or None when the client
            closed the connection or a kept-alive connection went idle.

        Raises:
            TimeoutError: The first request did not arrive in time.
            RequestTooLargeError: The request exceeded max_request_size.
            HTTPParseError: A chunked body was malformed or cut short, or
                            the transfer coding is not supported.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        # A client that already got one answer should be quick with the next
        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            head = self._buffer[:header_end]

            if self._is_chunked(head):
                body, request_end = self._read_chunked(body_start)
                request_data = self._with_content_length(head, body)
            else:
                content_length = self._parse_content_length(head)

                while len(self._buffer) - body_start < content_length:
                    chunk = self._recv()
                    if not chunk:
                        break  # peer closed mid-body; the parser reports it
                    self._buffer += chunk
                    self._check_size()

                request_end = body_start + content_length
                request_data = self._buffer[:request_end]

            # Keep any pipelined surplus for the next call
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _check_size(self) -> None:
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLargeError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        """recv() that maps an abrupt disconnect to b""."""
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Pull Content-Length out of raw header bytes.

        Needed before the request can be parsed properly, so this is a
        plain line scan. Missing or malformed values count as 0.
        """
        try:
            header_str = headers.decode("utf-8", errors="replace").lower()
            for line in header_str.split("\r\n"):
                if line.startswith("content-length:"):
                    return max(0, int(line.split(":", 1)[1].strip()))
        except (ValueError, IndexError):
            pass
        return 0

    # =========================================================================
    # CHUNKED TRANSFER CODING
    # =========================================================================

    def _is_chunked(self, headers: bytes) -> bool:
        """
        Whether the body uses chunked transfer coding.

        Transfer-Encoding wins over Content-Length when both are sent.

        Raises:
            HTTPParseError: 400 when chunked is present but not the final
                            coding, 501 for any other coding.
        """
        codings = []
        header_str = headers.decode("latin-1").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("transfer-encoding:"):
                codings += [c.strip() for c in line.split(":", 1)[1].split(",") if c.strip()]

        if not codings:
            return False

        message = "Unsupported Transfer-Encoding: " + ", ".join(codings)
        if codings[-1] != "chunked":
            raise HTTPParseError(message, status_code=400)
        if len(codings) > 1:
            raise HTTPParseError(message, status_code=501)
        return True

    def _read_chunked(self, start: int) -> tuple[bytes, int]:
        """
        Decode a chunked body that begins at self._buffer[start].

        Returns:
            (body, end) where end is the buffer offset just past the
            trailer section.

        Raises:
            HTTPParseError: On a bad chunk size, missing CRLF after chunk
                            data, or EOF before the last chunk.
        """
        body = b""
        pos = start

        while True:
            line_end = self._fill_until(b"\r\n", pos)
            size_field = self._buffer[pos:line_end].split(b";", 1)[0].strip()
            if not CHUNK_SIZE_PATTERN.fullmatch(size_field):
                raise HTTPParseError(f"Invalid chunk size: {size_field!r}")
            size = int(size_field, 16)
            pos = line_end + 2

            if size == 0:
                break

            self._fill_to(pos + size + 2)
            if self._buffer[pos + size:pos + size + 2] != b"\r\n":
                raise HTTPParseError("Chunk data not followed by CRLF")
            body += self._buffer[pos:pos + size]
            pos += size + 2

        # Trailer fields up to the empty line
        while True:
            line_end = self._fill_until(b"\r\n", pos)
            blank = line_end == pos
            pos = line_end + 2
            if blank:
                return body, pos

    def _fill_until(self, marker: bytes, start: int) -> int:
        """Read until marker appears at or after start; return its offset."""
        while True:
            index = self._buffer.find(marker, start)
            if index != -1:
                return index
            self._fill_more()

    def _fill_to(self, size: int) -> None:
        """Read until the buffer holds at least size bytes."""
        while len(self._buffer) < size:
            self._fill_more()

    def _fill_more(self) -> None:
        chunk = self._recv()
        if not chunk:
            raise HTTPParseError("Incomplete chunked body")
        self._buffer += chunk
        self._check_size()

    @staticmethod
    def _with_content_length(headers: bytes, body: bytes) -> bytes:
        """Re-frame a decoded chunked request with a Content-Length header."""
        lines = [
            line for line in headers.split(b"\r\n")
            if not line.lower().startswith((b"transfer-encoding:", b"content-length:"))
        ]
        lines.append(b"Content-Length: " + str(len(body)).encode())
        return b"\r\n".join(lines) + b"\r\n\r\n" + body

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a serialized response with sendall().

        Returns:
            True on success, False if the client went away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close gracefully: send FIN, drain what the client still sends,
        then release the descriptor. Safe to call twice.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        """Mark the connection as waiting for its next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
