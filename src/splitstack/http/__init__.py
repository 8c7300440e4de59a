"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

The HTTP/1.1 message types every pipeline stage works with.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ headers.py   Headers: case-insensitive, order-preserving mapping    │
    │ request.py   HTTPRequest + RequestParser (raw bytes → request)      │
    │ response.py  HTTPResponse + ResponseBuilder (response → raw bytes)  │
    │ router.py    Router: (method, path) → handler                       │
    └─────────────────────────────────────────────────────────────────────┘

Status codes come straight from the standard library's http.HTTPStatus,
which already carries the RFC 7231 reason phrases.
=============================================================================
"""

from http import HTTPStatus

from .headers import Headers
from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    json_response,
    no_content,
)
from .router import Router, Route, RouteMatch


__all__ = [
    "HTTPStatus",
    "Headers",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "HTTPResponse",
    "ResponseBuilder",
    "error_response",
    "json_response",
    "no_content",
    "Router",
    "Route",
    "RouteMatch",
]
