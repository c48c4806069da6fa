"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The subset of RFC 7231 status codes this server can emit, with their
reason phrases for the response status line.

    2xx  the request was handled         (200 OK, 201 Created)
    4xx  the client sent something wrong (400, 404, 405, 408, 413)
    5xx  the server failed               (500, 501, 503, 505)

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes with reason phrases.

    Being an IntEnum, members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200                            # Standard success response
    CREATED = 201                       # New user record was stored

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400                   # Malformed request or body
    NOT_FOUND = 404                     # Unknown route or user
    METHOD_NOT_ALLOWED = 405            # Unknown HTTP method
    REQUEST_TIMEOUT = 408               # Client never finished sending
    PAYLOAD_TOO_LARGE = 413             # Request exceeds max_request_size

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500         # Handler raised unexpectedly
    NOT_IMPLEMENTED = 501               # Transfer coding other than chunked
    SERVICE_UNAVAILABLE = 503           # Thread pool queue is full
    HTTP_VERSION_NOT_SUPPORTED = 505    # Anything but HTTP/1.0 and HTTP/1.1

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line, e.g. "Not Found"."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """True for any 4xx or 5xx code."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
