"""
Application-level errors.

Route handlers raise these; the wrapper installed by UserApi.register()
turns them into error envelopes carrying `status_code`.
"""

from typing import Optional

from ..http.status_codes import HTTPStatus


class ApiError(Exception):
    """Base class for errors that map to an error envelope."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(ApiError):
    status_code = HTTPStatus.NOT_FOUND


class BadRequest(ApiError):
    status_code = HTTPStatus.BAD_REQUEST
