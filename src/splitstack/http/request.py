"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects
(RFC 7230 message syntax), and carries the per-request state the stage
pipeline builds up while the request travels through it.

=============================================================================
REQUEST STATE THROUGH THE PIPELINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHO FILLS IN WHAT                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   RequestParser        method, path, version, headers,             │
    │                        query_params, body, client_address           │
    │                                                                      │
    │   AccessLogStage       context["request_id"], context["started"]   │
    │                                                                      │
    │   BodyParserStage      parsed_body                                  │
    │                                                                      │
    │   Router               path_params                                  │
    │                                                                      │
    │   StagePipeline        context["outcome"]                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CLIENT IDENTITY
=============================================================================

Admission control counts requests per client identity. By default that
is the peer IP of the TCP connection. Behind a reverse proxy every request
arrives from the proxy, so with trust_proxy enabled the first hop of
X-Forwarded-For is used instead. Only enable it when a proxy you control
overwrites that header.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, unquote
import re

from .headers import Headers


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code the transport answers with:
        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        501 Not Implemented            - Transfer-Encoding framing
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

        method:         GET, POST, PUT, DELETE, ...
        path:           Decoded, canonical path without query string ("/api/data")
        headers:        Case-insensitive Headers mapping
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes
        parsed_body:    Structure produced by the body parser stage
        path_params:    Route "/items/:id" with "/items/7" → {"id": "7"}
        client_address: (ip, port) of the TCP peer
        trust_proxy:    Take client identity from X-Forwarded-For
        context:        Scratch space shared by pipeline stages
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Headers = field(default_factory=Headers)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""
    parsed_body: Any = None

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)
    trust_proxy: bool = False
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Media type without parameters ("application/json; charset=utf-8" → "application/json")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def charset(self) -> str:
        ct = self.headers.get("content-type", "")
        for param in ct.split(";")[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
        return "utf-8"

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def origin(self) -> Optional[str]:
        return self.headers.get("origin")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def client_ip(self) -> str:
        """
        The client network identity used for rate limiting.

        With trust_proxy the leftmost X-Forwarded-For entry wins, since
        each proxy appends the address it received the request from.
        """
        if self.trust_proxy:
            forwarded = self.headers.get_first("x-forwarded-for")
            if forwarded:
                return forwarded
        return self.client_address[0]

    @property
    def bearer_token(self) -> Optional[str]:
        """The credential from "Authorization: Bearer <token>", if any."""
        scheme, _, token = self.headers.get("authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    @property
    def is_preflight(self) -> bool:
        return (
            self.method == "OPTIONS"
            and "origin" in self.headers
            and "access-control-request-method" in self.headers
        )

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection open unless told "Connection: close";
        HTTP/1.0 closes it unless told "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name, default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter ("/items?page=1&page=2" → "1")."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> list[str]:
        return self.query_params.get(name, [])


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        1. Size check            too large  → HTTPParseError(413)
        2. Find \\r\\n\\r\\n         missing    → HTTPParseError(400)
        3. Request line          invalid    → HTTPParseError(400/405/505)
        4. Headers               "Name: Value", case-insensitive
        5. Framing               Transfer-Encoding → HTTPParseError(501)
        6. Body                  exactly Content-Length bytes

    Body content is not interpreted here. Deserialization is a pipeline
    stage so that its failures are answered like every other rejection.
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024, trust_proxy: bool = False):
        self.max_request_size = max_request_size
        self.trust_proxy = trust_proxy

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Raises:
            HTTPParseError: If the request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header section is ISO-8859-1 on the wire; it never fails to decode
        header_section = data[:header_end].decode("iso-8859-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # Content-Length is the only body framing; chunked input is refused
        if "transfer-encoding" in headers:
            if "content-length" in headers:
                raise HTTPParseError("Both Transfer-Encoding and Content-Length sent")
            raise HTTPParseError(
                f"Transfer-Encoding not supported: {headers['transfer-encoding']}",
                status_code=501,
            )

        try:
            content_length = int(headers.get("content-length", "0"))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
            trust_proxy=self.trust_proxy,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, Dict[str, list[str]], str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        # Origin-form only ("/path?query"); "api/health", "*" and absolute
        # URIs never reach the pipeline
        raw_path, _, query = uri.partition("?")
        if not raw_path.startswith("/"):
            raise HTTPParseError(f"Invalid request target: {uri!r}")

        path = self.canonical_path(unquote(raw_path))
        query_params = parse_qs(query, keep_blank_values=True)

        # "GET /../../etc/passwd" must never reach a file-serving handler
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..")

        return method, path, query_params, version

    @staticmethod
    def canonical_path(path: str) -> str:
        """
        The one form of a path every stage sees.

            "//api///health/"  →  "/api/health"
            "/"                →  "/"

        Decoding happens first, so "/%2Fapi/health" collapses too.
        """
        return "/" + "/".join(segment for segment in path.split("/") if segment)

    def _parse_headers(self, lines: list[str]) -> Headers:
        headers = Headers()
        current_name: Optional[str] = None

        for line in lines:
            if not line:
                continue

            # Obsolete line folding: continuation of the previous header
            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] = f"{headers[current_name]} {line.strip()}"
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Malformed header line: {line!r}")

            name, value = match.groups()
            value = value.strip()
            current_name = name

            # Repeated fields are equivalent to one comma-joined field
            if name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value

        return headers
