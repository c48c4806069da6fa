"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates bytes from the socket into structured messages and back:

    request.py       raw bytes      → HTTPRequest
    router.py        HTTPRequest    → handler (first match wins)
    response.py      HTTPResponse   → raw bytes
    status_codes.py  status codes with reason phrases

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import HTTPResponse, ResponseBuilder, format_http_date
from .router import Router, Route, RouteMatch, Handler
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "Handler",

    # Status codes
    "HTTPStatus",
]
