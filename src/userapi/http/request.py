"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects
(RFC 7230 message syntax).

    GET /users/2?verbose=1 HTTP/1.1\r\n      ← request line
    Host: localhost:3000\r\n                 ← headers
    Content-Length: 0\r\n
    \r\n                                     ← blank line
    [body]                                   ← Content-Length bytes

The parser is deliberately strict about the request line (method, URI,
version) and lenient about headers: malformed header lines are skipped.
Paths are kept exactly as received, percent-escapes included; routing
depends on trailing slashes, so nothing is normalized here.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import parse_qs, urlparse
import re
import json
import math


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code the server should answer with:

        400 Bad Request                - malformed syntax or JSON body
        405 Method Not Allowed         - unknown method token
        413 Payload Too Large          - request exceeds the size limit
        501 Not Implemented            - transfer coding other than chunked
        505 HTTP Version Not Supported - anything but HTTP/1.0 or 1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(text: str) -> Optional[float]:
    # 1e400 overflows to inf, which cannot be written back out as JSON
    value = float(text)
    return None if math.isinf(value) else value


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Upper-case method token (GET, POST, ...)
        path:           Path as received (not percent-decoded), no query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header map with lower-case names
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Exactly Content-Length bytes
        path_params:    Filled in by the router (":id", "*rest")
        client_address: (ip, port) of the peer
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)

    # Lazily decoded body (see json property)
    _body_json: Optional[Any] = field(default=None, repr=False)
    _json_loaded: bool = field(default=False, repr=False)

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def json(self) -> Any:
        """
        The request body decoded as JSON.

        Decoded once and cached. An empty body yields None; the
        Content-Type header is not consulted. NaN and Infinity literals
        are rejected; numbers too large for a float decode to None.

        Raises:
            HTTPParseError: If the body is not valid UTF-8 JSON, or nests
                            too deeply to decode.
        """
        if not self._json_loaded:
            if self.body:
                try:
                    self._body_json = json.loads(
                        self.body.decode("utf-8"),
                        parse_constant=_reject_constant,
                        parse_float=_finite_float,
                    )
                except (ValueError, RecursionError) as e:
                    raise HTTPParseError(f"Invalid JSON body: {e}")
            self._json_loaded = True
        return self._body_json

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection should stay open after the response.

        HTTP/1.1 keeps alive unless "Connection: close" is sent;
        HTTP/1.0 closes unless "Connection: keep-alive" is sent.
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$
        method, request-target and version separated by single spaces.

    HEADER_PATTERN: ^([^:]+):\\s*(.*)$
        "Name: value", optional whitespace after the colon.
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Largest accepted request in bytes. Anything
                              bigger is rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete HTTP request.

        Args:
            data: Raw request bytes (headers and body) from the connection.
            client_address: Peer (ip, port), kept for access logging.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # Body length must match Content-Length exactly; leftovers belong
        # to the next pipelined request and were already split off by the
        # connection.
        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Split "METHOD SP request-target SP HTTP-version" into parts.

        Returns:
            (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        parsed = urlparse(uri)
        path = parsed.path or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict keyed by lower-case name.

        Obsolete line folding (continuation lines starting with whitespace)
        is appended to the previous header; repeated headers are joined
        with ", " as RFC 7230 allows.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse a request in one call with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
