"""
=============================================================================
USER API ROUTES
=============================================================================

The route handlers and the order they are registered in.

    #  PATTERN        METHOD     HANDLER          STATUS
    ─  ─────────────  ─────────  ───────────────  ──────────
    1  /              any        welcome          200 text
    2  /date          any        current_date     200
    3  /status        any        server_status    200
    4  /users         not POST   list_users       200
    5  /users/*rest   any        get_user         200 / 404
    6  /users         POST       create_user      201 / 400
    7  (fallback)     any        route_not_found  404

The first rule that matches wins. Rule 5 takes every method, so
POST /users/5 is a lookup, and "/users/" (empty id) reaches rule 5 too.

=============================================================================
"""

import logging
import time
from functools import wraps
from typing import Optional

from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.router import Router, Handler
from ..http.status_codes import HTTPStatus
from .envelope import success_response, error_response
from .errors import ApiError, NotFound, BadRequest
from .models import isoformat, utcnow, user_fields
from .store import UserStore


logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Welcome to the example API!"

USER_NOT_FOUND = "user not found"
BAD_BODY = "error processing request"
ROUTE_NOT_FOUND = "route not found"


def parse_int_prefix(text: str) -> Optional[int]:
    """
    Read the integer at the start of `text`, ignoring whatever follows.

        "2"      → 2
        " 2abc"  → 2
        "-3"     → -3
        "0x1A"   → 26
        "abc"    → None
        ""       → None

    Leading whitespace and one sign character are allowed. A "0x" prefix
    switches to hexadecimal. None means no digits were found.
    """
    s = text.lstrip()
    sign = 1
    if s[:1] in ("+", "-"):
        if s[0] == "-":
            sign = -1
        s = s[1:]

    base, digits = 10, "0123456789"
    if s[:2].lower() == "0x":
        base, digits = 16, "0123456789abcdef"
        s = s[2:]

    end = 0
    while end < len(s) and s[end].lower() in digits:
        end += 1

    if end == 0:
        return None
    return sign * int(s[:end], base)


def handles_api_errors(handler: Handler) -> Handler:
    """Turn an ApiError raised by `handler` into an error envelope."""
    @wraps(handler)
    def wrapper(request: HTTPRequest) -> HTTPResponse:
        try:
            return handler(request)
        except ApiError as e:
            logger.debug(f"{request.method} {request.path}: {e.status_code} {e.message}")
            return error_response(e.message, e.status_code)
    return wrapper


class UserApi:
    """
    Route handlers bound to one UserStore.

    Usage:
        api = UserApi(UserStore.seeded(), server_name="UserApiServer", version="1.0.0")
        api.register(router)
    """

    def __init__(self, store: UserStore, server_name: str = "UserApiServer", version: str = "1.0.0"):
        self.store = store
        self.server_name = server_name
        self.version = version
        self._started = time.monotonic()

    @property
    def uptime(self) -> float:
        """Seconds since this API object was created."""
        return time.monotonic() - self._started

    def register(self, router: Router) -> Router:
        """Install every rule on `router`, in evaluation order."""
        router.add_route("/", handles_api_errors(self.welcome))
        router.add_route("/date", handles_api_errors(self.current_date))
        router.add_route("/status", handles_api_errors(self.server_status))
        router.add_route("/users", handles_api_errors(self.list_users), exclude=("POST",))
        router.add_route("/users/*rest", handles_api_errors(self.get_user))
        router.add_route("/users", handles_api_errors(self.create_user), method="POST")
        router.set_fallback(handles_api_errors(self.route_not_found))
        return router

    # ─────────────────────────────────────────────────────────────────────
    # HANDLERS
    # ─────────────────────────────────────────────────────────────────────

    def welcome(self, request: HTTPRequest) -> HTTPResponse:
        return ResponseBuilder().text(WELCOME_MESSAGE).build()

    def current_date(self, request: HTTPRequest) -> HTTPResponse:
        return success_response(isoformat(utcnow()))

    def server_status(self, request: HTTPRequest) -> HTTPResponse:
        return success_response({
            "serverName": self.server_name,
            "version": self.version,
            "uptime": self.uptime,
        })

    def list_users(self, request: HTTPRequest) -> HTTPResponse:
        return success_response([user.to_dict() for user in self.store.all()])

    def get_user(self, request: HTTPRequest) -> HTTPResponse:
        """
        Look a user up by the id in the first segment after "/users/".

        Anything after a further slash is ignored: /users/2/x finds user 2.
        """
        segment = request.path_params.get("rest", "").split("/", 1)[0]
        user = self.store.find(parse_int_prefix(segment))
        if user is None:
            raise NotFound(USER_NOT_FOUND)
        return success_response(user.to_dict())

    def create_user(self, request: HTTPRequest) -> HTTPResponse:
        """
        Create a user from a JSON body.

        An empty body, malformed JSON, or a literal null is a 400. Any other
        JSON value is accepted; only "name" and "email" of an object are kept.
        """
        try:
            payload = request.json
        except HTTPParseError as e:
            raise BadRequest(BAD_BODY) from e
        if payload is None:
            raise BadRequest(BAD_BODY)

        name, email = user_fields(payload)
        user = self.store.append(name=name, email=email)
        logger.info(f"User {user.id} created")
        return success_response(user.to_dict(), HTTPStatus.CREATED)

    def route_not_found(self, request: HTTPRequest) -> HTTPResponse:
        raise NotFound(ROUTE_NOT_FOUND)
