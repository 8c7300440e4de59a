"""
=============================================================================
HEALTH CHECK HANDLER
=============================================================================

    GET /api/health  →  200 {"status": "OK", "timestamp": "2026-10-19T08:30:00.123Z"}

Load balancers, uptime monitors and the client's own connectivity check
poll this endpoint. It answers without touching any dependency, so a 200
means "the process is up and the pipeline works", nothing more.

The timestamp is UTC ISO-8601 with millisecond precision and a "Z"
suffix, the same shape JavaScript's Date.toISOString() produces, so the
client can parse it with new Date(...).

Responses carry Cache-Control: no-store; a cached health answer is a lie.
=============================================================================
"""

from datetime import datetime, timezone
from typing import Callable

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.router import Router


Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """2026-10-19T08:30:00.123Z"""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class HealthHandler:
    """
    Health check endpoint.

        health = HealthHandler()
        router.get("/api/health", health.handle)
    """

    def __init__(self, clock: Clock = _utcnow):
        self.clock = clock

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return (ResponseBuilder()
            .json({"status": "OK", "timestamp": iso_timestamp(self.clock())})
            .no_cache()
            .build())

    def register(self, router: Router, path: str = "/health") -> "HealthHandler":
        router.get(path, name="health")(self.handle)
        return self
