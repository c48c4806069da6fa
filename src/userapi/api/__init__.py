"""
The user API: data model, in-memory store, response envelope and routes.
"""

from .models import ABSENT, User, isoformat, seed_users
from .store import UserStore
from .envelope import ApiResponse, envelope_response, success_response, error_response
from .errors import ApiError, NotFound, BadRequest
from .routes import UserApi, parse_int_prefix

__all__ = [
    "ABSENT",
    "User",
    "isoformat",
    "seed_users",
    "UserStore",
    "ApiResponse",
    "envelope_response",
    "success_response",
    "error_response",
    "ApiError",
    "NotFound",
    "BadRequest",
    "UserApi",
    "parse_int_prefix",
]
