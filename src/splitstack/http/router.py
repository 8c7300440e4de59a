"""
=============================================================================
HTTP ROUTER
=============================================================================

Maps (method, path) to handler functions, Express style:

    router = Router()
    api = router.group("/api")

    @api.get("/data")
    def list_data(request):
        return json_response({"data": []})

    @api.get("/data/:id")
    def get_item(request):
        return json_response({"id": request.path_params["id"]})

Patterns:
    /static     exact segment
    /:param     one segment, captured into request.path_params
    /*rest      the remainder of the path, slashes included

A method mismatch is not a special case: if no route accepts the method,
the request falls through to the not-found stage like any other unmatched
path. First registered, first matched.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
import re

from .request import HTTPRequest
from .response import HTTPResponse


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """A URL pattern bound to a handler."""

    path: str
    method: Optional[str]            # None = any method
    handler: Handler
    name: Optional[str] = None
    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """HTTP request router with path parameters and prefix groups."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix.rstrip("/")
        self._routes: List[Route] = []
        self._groups: List["Router"] = []

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Route:
        full_path = (self.prefix + path).rstrip("/") or "/"
        pattern, param_names = self._compile_pattern(full_path)

        route = Route(
            path=full_path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        "/api/data/:id" → ^/api/data/(?P<id>[^/]+)$
        "/assets/*file" → ^/assets/(?P<file>.*)$
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

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """Find the route for a canonical path (see RequestParser.canonical_path)."""
        method = method.upper()

        for route in self.routes():
            # HEAD is answered by GET routes; the transport drops the body
            if route.method and route.method != method:
                if not (method == "HEAD" and route.method == "GET"):
                    continue
            match = route._pattern.match(path) if route._pattern else None
            if match:
                return RouteMatch(route=route, params=match.groupdict())

        return None

    # =========================================================================
    # DECORATORS
    # =========================================================================

    def route(
        self,
        path: str,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name)

    def post(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "POST", name)

    def put(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "PUT", name)

    def delete(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "DELETE", name)

    def patch(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "PATCH", name)

    # =========================================================================
    # GROUPS AND REVERSE ROUTING
    # =========================================================================

    def group(self, prefix: str) -> "Router":
        """
        Create a sub-router whose routes live under prefix.

            api = router.group("/api")
            @api.get("/health")       # matches /api/health
        """
        sub_router = Router(self.prefix + prefix)
        self._groups.append(sub_router)
        return sub_router

    def url_for(self, name: str, **params: str) -> Optional[str]:
        """router.url_for("get_item", id="7") → "/api/data/7"."""
        for route in self.routes():
            if route.name != name:
                continue
            url = route.path
            for param_name, value in params.items():
                url = url.replace(f":{param_name}", value)
                url = url.replace(f"*{param_name}", value)
            return url
        return None

    def routes(self) -> List[Route]:
        all_routes = list(self._routes)
        for sub_router in self._groups:
            all_routes.extend(sub_router.routes())
        return all_routes
