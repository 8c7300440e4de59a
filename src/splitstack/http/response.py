"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

HTTPResponse is the single terminal value every pipeline traversal ends in.
ResponseBuilder and the helper functions construct it.

=============================================================================
RESPONSE STRUCTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTP RESPONSE STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTP/1.1 429 Too Many Requests\r\n       ← status line            │
    │   Content-Type: application/json\r\n       ← headers                │
    │   Retry-After: 840\r\n                                              │
    │   X-Content-Type-Options: nosniff\r\n      ← added by security      │
    │   Content-Length: 58\r\n                   ← added by to_bytes()    │
    │   \r\n                                                               │
    │   {"error": "Too many requests, please try again later."}           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Stages only ever ADD headers. Once a body is set, the response is final,
and it is serialized in one sendall() so it is never partially written.

=============================================================================
ERROR BODIES
=============================================================================

Every error response the server produces has the same minimal shape:

    {"error": "<short message>"}

Diagnostic fields ("message", "stack") are added only by the error
translation stage, and only in development mode.
=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from http import HTTPStatus
from typing import Any, Dict, Mapping, Optional, Union
import json
import mimetypes

from .headers import Headers


JSON_CONTENT_TYPE = "application/json; charset=utf-8"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

        Handler / stage          to_bytes()             Socket
        HTTPResponse   ─────►    serializes   ─────►    sendall()
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    version: str = "HTTP/1.1"

    def __post_init__(self) -> None:
        self.status = HTTPStatus(self.status)
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    @property
    def status_line(self) -> str:
        return f"{self.version} {self.status.value} {self.status.phrase}"

    @property
    def json(self) -> Any:
        """Decode a JSON body. Mainly useful in tests and logging."""
        if not self.body:
            return None
        return json.loads(self.body.decode("utf-8"))

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def merge_headers(self, headers: Mapping[str, str]) -> "HTTPResponse":
        """
        Add headers this response does not set itself.

        Headers a stage put on the in-progress response (security, CORS,
        rate limit) end up on whichever response turns out to be terminal,
        but never override what the terminal producer chose.
        """
        for name, value in headers.items():
            if name.lower() == "vary" and name in self.headers:
                for item in value.split(","):
                    self.headers.add(name, item.strip())
            else:
                self.headers.setdefault(name, value)
        return self

    def to_bytes(self, server_name: Optional[str] = "splitstack", include_body: bool = True) -> bytes:
        """
        Serialize the response to bytes for socket.sendall().

        Content-Length, Date and Server are filled in when missing.
        include_body=False serializes a HEAD response: same headers, no body.
        """
        response_headers = self.headers.copy()
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        if server_name:
            response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in response_headers.items())
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("iso-8859-1", errors="replace")
        return head + self.body if include_body else head


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .json({"message": "Data received"})
            .header("X-Custom", "value")
            .build())
    """

    def __init__(self) -> None:
        self._status = HTTPStatus.OK
        self._headers = Headers()
        self._body: bytes = b""

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Mapping[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def file(self, content: bytes, filename: str) -> "ResponseBuilder":
        self._body = content
        self._headers["Content-Type"] = guess_content_type(filename)
        return self

    def no_cache(self) -> "ResponseBuilder":
        self._headers["Cache-Control"] = "no-store"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(status=self._status, headers=self._headers.copy(), body=self._body)


# =============================================================================
# HELPERS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """RFC 7231 IMF-fixdate: "Wed, 21 Oct 2015 07:28:00 GMT"."""
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    if content_type is None:
        return "application/octet-stream"
    if content_type.startswith("text/") or content_type in ("application/javascript", "application/json"):
        return f"{content_type}; charset=utf-8"
    return content_type


def json_response(
    data: Any,
    status: Union[HTTPStatus, int] = HTTPStatus.OK,
    headers: Optional[Dict[str, str]] = None,
) -> HTTPResponse:
    builder = ResponseBuilder().status(status).json(data)
    if headers:
        builder.headers(headers)
    return builder.build()


def error_response(
    status: Union[HTTPStatus, int],
    error: str,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> HTTPResponse:
    """Build the minimal error body {"error": error}, plus any extra fields."""
    return json_response({"error": error, **extra}, status=status, headers=headers)


def no_content(headers: Optional[Dict[str, str]] = None) -> HTTPResponse:
    return HTTPResponse(status=HTTPStatus.NO_CONTENT, headers=Headers(headers))
