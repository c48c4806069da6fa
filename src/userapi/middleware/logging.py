"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One line per request on the "userapi.access" logger.

Text format (Apache-like):

    127.0.0.1 - - [18/Oct/2026:10:15:32 +0000] "POST /users" 201 118 0.42ms

JSON format:

    {"request_id": "a1b2c3d4", "method": "POST", "path": "/users", ...}

Every response also carries the request id in an X-Request-ID header so a
client report can be matched to its log line.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional
from urllib.parse import urlencode
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("userapi.access")


@dataclass
class RequestLog:
    """One access-log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it first so it times and logs every
    request, including ones that end in an error envelope.

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add the X-Request-ID response header.
            log_level: Level used for access lines.
            skip_paths: Paths that are served but not logged.
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.get_header("X-Request-ID") or str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        client_ip = request.client_address[0] if request.client_address else "-"
        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=urlencode(request.query_params, doseq=True),
            client_ip=client_ip,
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict(), ensure_ascii=False))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
