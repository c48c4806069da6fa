"""
=============================================================================
URL ROUTER
=============================================================================

Ordered, first-match-wins routing.

    Registered rules (evaluated top to bottom):
    ┌──────────────────────────────────────────────────────────────┐
    │ ANY        /            → welcome                            │
    │ ANY        /date        → current_date                       │
    │ ANY        /status      → server_status                      │
    │ ANY-POST   /users       → list_users                         │
    │ ANY        /users/*rest → get_user       ← GET /users/2      │
    │ POST       /users       → create_user                        │
    │ (fallback)              → route_not_found                    │
    └──────────────────────────────────────────────────────────────┘

Pattern syntax:

    /users          static, exact match only ("/users/" does NOT match)
    /users/:id      one path segment        → {"id": "2"}
    /users/*rest    everything after "/users/", possibly empty
                                            → {"rest": "2abc/x"}

Each rule may accept one method, any method (method=None), or any method
except an excluded set. The first rule whose pattern AND method test both
pass handles the request, so registration order is part of the routing
contract. Paths are matched exactly as parsed; trailing slashes are
significant.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List, FrozenSet, Iterable
import logging
import re

from .request import HTTPRequest
from .response import HTTPResponse, ResponseBuilder
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)

# A handler takes a request and returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered rule binding a path pattern (and method test) to a handler.
    """

    path: str                        # Pattern, e.g. /users/*rest
    method: Optional[str]            # None = any method
    handler: Handler
    exclude: FrozenSet[str] = frozenset()   # Methods this rule never takes
    name: Optional[str] = None

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)

    def accepts(self, method: str) -> bool:
        """Whether this rule's method test passes for `method`."""
        method = method.upper()
        if method in self.exclude:
            return False
        return self.method is None or self.method == method

    @property
    def method_label(self) -> str:
        if self.method:
            return self.method
        if self.exclude:
            return "ANY-" + ",".join(sorted(self.exclude))
        return "ANY"


@dataclass
class RouteMatch:
    """A matched route plus the path parameters it captured."""
    route: Route
    params: Dict[str, str]


class Router:
    """
    HTTP request router.

    Usage:

        router = Router(fallback=not_found_handler)
        router.add_route("/users", list_users, exclude=("POST",))
        router.add_route("/users/*rest", get_user)   # path_params["rest"]
        router.add_route("/users", create_user, method="POST")

        response = router.handle(request)
    """

    def __init__(self, fallback: Optional[Handler] = None):
        """
        Args:
            fallback: Handler for requests no rule matches. Defaults to a
                      bare 404 text response.
        """
        self._routes: List[Route] = []
        self._fallback = fallback

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        exclude: Iterable[str] = (),
    ) -> Route:
        """
        Append a rule. Rules are tried in registration order.

        Args:
            path: URL pattern (see module docstring for syntax)
            handler: Callable taking the request, returning a response
            method: Single accepted method, or None for any
            exclude: Methods this rule refuses even when method is None

        Returns:
            The registered Route.
        """
        pattern, param_names = self._compile_pattern(path)
        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            exclude=frozenset(m.upper() for m in exclude),
            name=getattr(handler, "__name__", None),
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def set_fallback(self, handler: Handler) -> None:
        """Replace the handler used when no rule matches."""
        self._fallback = handler

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a path pattern into an anchored regex.

            "/users/:id"    → ^/users/(?P<id>[^/]+)$
            "/users/*rest"  → ^/users/(?P<rest>.*)$
            "/"             → ^/$

        Returns:
            (compiled regex, parameter names in order)
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")
            elif segment.startswith("*"):
                # Wildcard swallows the rest of the path, so it ends the pattern
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.*)")
                break
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")  # the root pattern

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first rule whose pattern and method test both pass.

        Returns:
            RouteMatch, or None if no rule applies.
        """
        for route in self._routes:
            if not route.accepts(method):
                continue
            found = route._pattern.match(path)
            if found:
                return RouteMatch(route=route, params=found.groupdict())
        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request to its handler, or to the fallback.

        The captured path parameters are stored on request.path_params
        before the handler runs.
        """
        found = self.match(request.method, request.path)

        if found:
            request.path_params = found.params
            logger.debug(
                f"{request.method} {request.path} → {found.route.name}"
            )
            return found.route.handler(request)

        if self._fallback is not None:
            return self._fallback(request)

        return (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .text(f"No route matches {request.path}")
            .build())

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def log_routes(self, level: int = logging.DEBUG) -> None:
        """Write the routing table to the log, one rule per line."""
        for route in self._routes:
            logger.log(level, f"  {route.method_label:10} {route.path:14} → {route.name}")
