"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses and serializes them for the socket.

    HTTP/1.1 201 Created\r\n                       ← status line
    Content-Type: application/json; charset=utf-8\r\n
    Content-Length: 118\r\n                        ← added by to_bytes()
    Date: Sun, 18 Oct 2026 10:00:00 GMT\r\n        ← added by to_bytes()
    Server: UserApiServer/1.0.0\r\n                ← added by to_bytes()
    \r\n
    {"status": "success", "data": {...}, ...}

Handlers normally use the fluent ResponseBuilder:

    response = (ResponseBuilder()
        .status(HTTPStatus.CREATED)
        .json({"status": "success", ...})
        .build())

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any
import json

from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Use ResponseBuilder rather than constructing this directly.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = "UserApiServer") -> bytes:
        """
        Serialize status line, headers and body.

        Content-Length, Date and Server are filled in unless the handler
        already set them.

        Args:
            server_name: Value for the Server header.

        Returns:
            The full response, ready for socket.sendall().
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))
        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    Every method except build() returns self:

        ResponseBuilder().status(HTTPStatus.OK).text("hi").build()
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Plain-text UTF-8 body."""
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = "text/plain; charset=utf-8"
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        JSON body.

        Args:
            data: Any json-serializable value.

        ensure_ascii=False keeps names like "María García" readable on
        the wire; the body is UTF-8 either way.

        Raises:
            ValueError: If data contains NaN or an infinity, which have no
                        JSON spelling.
        """
        self._body = json.dumps(data, ensure_ascii=False, allow_nan=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date.

    Always GMT, e.g. "Thu, 15 Jan 2026 12:30:45 GMT". Names are spelled
    out here instead of using strftime so the output does not depend on
    the process locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    dt = dt.astimezone(timezone.utc)
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
