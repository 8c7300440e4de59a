"""
=============================================================================
ACCESS LOGGING STAGE
=============================================================================

Records method, path, status and latency for every request that reaches
it, once the terminal response is known.

=============================================================================
WRAPPING, NOT PRECEDING
=============================================================================

The stage sits fourth in the pipeline but logs LAST:

    process()   start the clock, assign a request id     (forward pass)
       ...      body parsing, dispatch, maybe a failure
    complete()  status + latency of the terminal response (after the end)

complete() runs even when dispatch raised and the error stage answered,
so failed requests are logged with their 500 like any other.

=============================================================================
FORMATS
=============================================================================

    dev        GET /api/health 200 1.23 ms - 45
    combined   127.0.0.1 - - [19/Oct/2026:10:12:01 +0000] "GET /api/health HTTP/1.1" 200 45 "-" "curl/8.0"
    json       {"request_id": "3fa2c1d0", "method": "GET", "path": "/api/health", ...}

Entries go to the "splitstack.access" logger so they can be routed
separately from application logs.
=============================================================================
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
import json
import logging
import time
import uuid

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import CONTINUE, Stage, StageOrder, StageResult


logger = logging.getLogger("splitstack.access")

LOG_FORMATS = ("dev", "combined", "json")


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    method: str
    path: str
    version: str
    client_ip: str
    user_agent: str
    referer: str
    status_code: int
    content_length: int
    duration_ms: float
    outcome: str
    timestamp: datetime

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def to_dev(self) -> str:
        return (
            f"{self.method} {self.path} {self.status_code} "
            f"{self.duration_ms:.2f} ms - {self.content_length}"
        )

    def to_combined(self) -> str:
        """Apache combined log format."""
        stamp = self.timestamp.strftime("%d/%b/%Y:%H:%M:%S %z")
        return (
            f'{self.client_ip} - - [{stamp}] "{self.method} {self.path} {self.version}" '
            f'{self.status_code} {self.content_length} "{self.referer}" "{self.user_agent}"'
        )

    def format(self, log_format: str) -> str:
        if log_format == "json":
            return json.dumps(self.to_dict())
        if log_format == "combined":
            return self.to_combined()
        return self.to_dev()


class AccessLogStage(Stage):
    """
    Logs every request after its terminal response is determined.

        AccessLogStage(log_format="dev")
        AccessLogStage(log_format="json", skip_paths=["/api/health"])
    """

    order = StageOrder.ACCESS_LOG

    def __init__(
        self,
        log_format: str = "dev",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])
        self.timer = timer

    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        # Honour an id assigned by a proxy in front of us
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        request.context["request_id"] = request_id
        request.context["started"] = self.timer()

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id
        return CONTINUE

    def complete(self, request: HTTPRequest, response: HTTPResponse) -> None:
        duration_ms = (self.timer() - request.context.get("started", self.timer())) * 1000

        if request.path in self.skip_paths:
            return

        outcome = request.context.get("outcome")
        entry = RequestLog(
            request_id=request.context.get("request_id", "-"),
            method=request.method,
            path=request.path,
            version=request.version,
            client_ip=request.client_ip or "-",
            user_agent=request.user_agent or "-",
            referer=request.headers.get("referer", "-"),
            status_code=response.status.value,
            content_length=len(response.body),
            duration_ms=duration_ms,
            outcome=outcome.value if outcome is not None else "-",
            timestamp=datetime.now(timezone.utc),
        )
        request.context["access_log"] = entry
        logger.log(self.log_level, entry.format(self.log_format))
