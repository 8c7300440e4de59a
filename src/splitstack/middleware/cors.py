"""
=============================================================================
ORIGIN POLICY (CORS) STAGE
=============================================================================

Browsers attach an Origin header to cross-origin requests. The split
client (served from CLIENT_URL during development) talks to this server
from a different origin, so the server must say which origins it trusts.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ORIGIN DECISION                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   no Origin header ─────────────────────────────► continue          │
    │   (curl, server-to-server, same-origin GET)                         │
    │                                                                      │
    │   Origin == this server's own origin ───────────► continue          │
    │   (production: bundle and API share a host)                         │
    │                                                                      │
    │   Origin in allow-list                                              │
    │       ├── OPTIONS + Access-Control-Request-Method                   │
    │       │        └─► 204 with Allow-* headers   (preflight approved)  │
    │       └── anything else                                             │
    │                └─► continue, with                                   │
    │                    Access-Control-Allow-Origin: <origin>            │
    │                    Access-Control-Allow-Credentials: true           │
    │                    Vary: Origin                                     │
    │                                                                      │
    │   Origin not in allow-list ─────────────────────► 403 rejected      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Rejecting outright, rather than merely omitting the Allow-Origin header,
means a disallowed origin never reaches a route handler, not even for
"simple" requests the browser would send without a preflight.

=============================================================================
WHY ECHO THE ORIGIN?
=============================================================================

With credentials (cookies, Authorization) browsers refuse a wildcard
Access-Control-Allow-Origin. The matched origin is echoed back instead,
and "Vary: Origin" keeps shared caches from serving one origin's answer
to another.
=============================================================================
"""

from dataclasses import dataclass
from typing import List, Optional
import logging

from ..errors import OriginRejected
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, no_content
from .base import CONTINUE, Outcome, Stage, StageOrder, StageResult, Terminal


logger = logging.getLogger(__name__)


@dataclass
class CORSConfig:
    """
    Origin policy options.

        CORSConfig(
            allow_origins=["https://app.example.com"],
            allow_credentials=True,
        )

    "*" in allow_origins admits every origin.
    """

    allow_origins: List[str] = None
    allow_methods: List[str] = None
    allow_headers: List[str] = None
    expose_headers: List[str] = None
    allow_credentials: bool = True
    max_age: int = 86400  # 24 hours

    def __post_init__(self):
        if self.allow_origins is None:
            self.allow_origins = ["http://localhost:3000"]
        self.allow_origins = [origin.rstrip("/") for origin in self.allow_origins]
        if self.allow_methods is None:
            self.allow_methods = ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]
        if self.allow_headers is None:
            self.allow_headers = ["Content-Type", "Authorization", "X-Requested-With"]
        if self.expose_headers is None:
            self.expose_headers = ["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining"]


class OriginPolicyStage(Stage):
    """Admits allow-listed origins, answers their preflights, rejects the rest."""

    order = StageOrder.ORIGIN

    def __init__(self, config: Optional[CORSConfig] = None):
        self.config = config or CORSConfig()

    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        origin = request.origin
        if not origin or self._is_same_origin(request, origin):
            return CONTINUE

        if not self.is_origin_allowed(origin):
            logger.warning(f"Rejected origin {origin} for {request.method} {request.path}")
            return Terminal.reject(OriginRejected(origin), Outcome.REJECTED_BY_ORIGIN)

        if request.is_preflight:
            return Terminal(self._preflight_response(request, origin), Outcome.PREFLIGHT)

        self._add_cors_headers(response, origin)
        return CONTINUE

    def is_origin_allowed(self, origin: str) -> bool:
        if "*" in self.config.allow_origins:
            return True
        return origin.rstrip("/") in self.config.allow_origins

    def _is_same_origin(self, request: HTTPRequest, origin: str) -> bool:
        # Scheme is not visible behind plain sockets; compare host[:port] only
        _, _, origin_host = origin.partition("://")
        return bool(request.host) and origin_host.rstrip("/") == request.host

    def _preflight_response(self, request: HTTPRequest, origin: str) -> HTTPResponse:
        response = no_content()
        self._add_cors_headers(response, origin)

        response.headers["Access-Control-Allow-Methods"] = ", ".join(self.config.allow_methods)

        # Reflect what the browser asked for when no explicit list is wanted
        requested_headers = request.headers.get("access-control-request-headers", "")
        allow_headers = ", ".join(self.config.allow_headers) or requested_headers
        if allow_headers:
            response.headers["Access-Control-Allow-Headers"] = allow_headers

        response.headers["Access-Control-Max-Age"] = str(self.config.max_age)
        return response

    def _add_cors_headers(self, response: HTTPResponse, origin: str) -> None:
        if "*" in self.config.allow_origins and not self.config.allow_credentials:
            response.headers["Access-Control-Allow-Origin"] = "*"
        else:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers.add("Vary", "Origin")

        if self.config.allow_credentials:
            response.headers["Access-Control-Allow-Credentials"] = "true"

        if self.config.expose_headers:
            response.headers["Access-Control-Expose-Headers"] = ", ".join(self.config.expose_headers)
