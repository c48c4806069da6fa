"""
=============================================================================
RESPONSE ENVELOPE
=============================================================================

Every JSON response has the same shape:

    success                               error
    ───────                               ─────
    {                                     {
      "status": "success",                  "status": "error",
      "data": <payload>,                    "data": null,
      "timestamp": "2026-...Z"              "message": "user not found",
    }                                       "timestamp": "2026-...Z"
                                          }

The timestamp is taken when the envelope is built.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus
from .models import isoformat, utcnow


SUCCESS = "success"
ERROR = "error"


@dataclass
class ApiResponse:
    status: str
    data: Any = None
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def success(cls, data: Any) -> "ApiResponse":
        return cls(status=SUCCESS, data=data)

    @classmethod
    def failure(cls, message: str) -> "ApiResponse":
        return cls(status=ERROR, data=None, message=message)

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form; "message" only appears when set."""
        envelope: Dict[str, Any] = {"status": self.status, "data": self.data}
        if self.message is not None:
            envelope["message"] = self.message
        envelope["timestamp"] = isoformat(self.timestamp)
        return envelope


def envelope_response(envelope: ApiResponse, status: int = HTTPStatus.OK) -> HTTPResponse:
    """Wrap an envelope in a JSON HTTP response."""
    return (ResponseBuilder()
        .status(status)
        .json(envelope.to_dict())
        .build())


def success_response(data: Any, status: int = HTTPStatus.OK) -> HTTPResponse:
    return envelope_response(ApiResponse.success(data), status)


def error_response(message: str, status: int) -> HTTPResponse:
    return envelope_response(ApiResponse.failure(message), status)
