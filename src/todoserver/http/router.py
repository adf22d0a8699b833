"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) pairs to handlers.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTE TABLE                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET     /healthz       → HealthHandler.healthz                     │
    │   GET     /version       → HealthHandler.version                     │
    │   GET     /metrics       → MetricsHandler.snapshot                   │
    │   GET     /todos         → TodoHandler.list                          │
    │   POST    /todos         → TodoHandler.create                        │
    │   GET     /todos/*id     → TodoHandler.get                           │
    │   PUT     /todos/*id     → TodoHandler.update                        │
    │   DELETE  /todos/*id     → TodoHandler.delete                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Pattern segments:
    static     /todos      exact match
    :param     /:id        exactly one non-empty segment
    *param     /*id        everything remaining, possibly empty or with "/"

Paths are matched as sent; no trailing-slash folding. "/todos/" therefore
hits the item route with an empty id, and "/healthz/" is unknown.

=============================================================================
DISPATCH POLICY
=============================================================================

    path matches, method matches   → handler
    path matches, method does not  → 405 + Allow header
    no route for the path          → 404 "not found"

Handlers raise TodoServerError subclasses instead of building error
responses themselves; handle() renders them as plain text.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List
import logging
import re

from .request import HTTPRequest
from .response import HTTPResponse, error_response
from ..errors import TodoServerError, MethodNotAllowedError, NotFoundError


logger = logging.getLogger(__name__)


# Handler: takes a request, returns a response (or raises TodoServerError)
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        Route(path="/todos/*id", method="PUT", handler=todos.update,
              _param_names=["id"])
    """

    path: str
    method: str
    handler: Handler

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """Result of a successful match: the route plus extracted parameters."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    HTTP request router with path parameters.

    Usage:
        router = Router()

        @router.get("/healthz")
        def healthz(request):
            return ok("ok")

        router.add_route("/todos/*id", todos.get, method="GET")

        response = router.handle(request)
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, path: str, handler: Handler, method: str) -> Route:
        """
        Register a handler for one method on a path pattern.

        Returns:
            The registered Route.

        Raises:
            ValueError: If the same method is already bound to the pattern.
        """
        method = method.upper()
        for existing in self._routes:
            if existing.path == path and existing.method == method:
                raise ValueError(f"Route already registered: {method} {path}")

        pattern, param_names = self._compile_pattern(path)
        route = Route(
            path=path,
            method=method,
            handler=handler,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)

        logger.debug("Registered route %s %s", method, path)
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a path pattern into an anchored regex.

            "/todos/*id"  →  ^/todos/(?P<id>.*)$
            "/todos/:id"  →  ^/todos/(?P<id>[^/]+)$
            "/healthz"    →  ^/healthz$
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
                # Wildcard swallows the rest of the path; must be last
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.*)")
                break

            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    @staticmethod
    def _normalize(path: str) -> str:
        return path if path.startswith("/") else "/" + path

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching both method and path.

        Returns:
            RouteMatch, or None when nothing matches.
        """
        path = self._normalize(path)
        method = method.upper()

        for route in self._routes:
            if route.method != method:
                continue
            match = route._pattern.match(path)
            if match:
                return RouteMatch(route=route, params=match.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for a path, sorted; empty if the path is unknown."""
        path = self._normalize(path)
        return sorted({
            route.method for route in self._routes
            if route._pattern.match(path)
        })

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request, raising on failure.

        Raises:
            MethodNotAllowedError: The path is known but not for this method.
            NotFoundError: No route matches the path.
            TodoServerError: Whatever the handler raises.
        """
        match = self.match(request.method, request.path)

        if match:
            request.path_params = match.params
            return match.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            raise MethodNotAllowedError(allowed)

        raise NotFoundError()

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and render taxonomy errors as plain-text responses.

        Anything that is not a TodoServerError propagates to the caller.
        """
        try:
            return self.dispatch(request)
        except MethodNotAllowedError as e:
            return error_response(e.status_code, e.message, allowed=e.allowed)
        except TodoServerError as e:
            logger.debug(
                "%s %s rejected: %d %s",
                request.method, request.path, e.status_code, e.message,
            )
            return error_response(e.status_code, e.message)

    # =========================================================================
    # DECORATOR-STYLE ROUTE REGISTRATION
    # =========================================================================

    def route(self, path: str, methods: Optional[List[str]] = None) -> Callable[[Handler], Handler]:
        """Register the decorated function for each of `methods` (GET by default)."""
        def decorator(handler: Handler) -> Handler:
            for method in methods or ["GET"]:
                self.add_route(path, handler, method=method)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, ["GET"])

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)
