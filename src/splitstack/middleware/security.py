"""
=============================================================================
SECURITY HEADERS STAGE
=============================================================================

Adds a fixed set of hardening headers to every response the server sends:
handler responses, rejections, error translations and not-found answers
alike. The defaults mirror the widely deployed "helmet" baseline for
browser-facing APIs:

    ┌──────────────────────────────────────┬──────────────────────────────┐
    │ Header                               │ Protects against             │
    ├──────────────────────────────────────┼──────────────────────────────┤
    │ Content-Security-Policy              │ XSS, injected resources      │
    │ Cross-Origin-Opener-Policy           │ cross-window attacks         │
    │ Cross-Origin-Resource-Policy         │ cross-origin reads           │
    │ Origin-Agent-Cluster                 │ shared agent clusters        │
    │ Referrer-Policy                      │ URL leakage                  │
    │ Strict-Transport-Security            │ protocol downgrade           │
    │ X-Content-Type-Options               │ MIME sniffing                │
    │ X-DNS-Prefetch-Control               │ DNS prefetch leakage         │
    │ X-Download-Options                   │ IE download execution        │
    │ X-Frame-Options                      │ clickjacking                 │
    │ X-Permitted-Cross-Domain-Policies    │ Flash/PDF policy files       │
    │ X-XSS-Protection                     │ legacy auditor bugs (off)    │
    └──────────────────────────────────────┴──────────────────────────────┘

The headers go on the in-progress response. The pipeline merges them onto
whichever response turns out to be terminal, so this stage never has to
know how the request ends.
=============================================================================
"""

from types import MappingProxyType
from typing import Mapping, Optional

from ..http.headers import Headers
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import CONTINUE, Stage, StageOrder, StageResult


DEFAULT_SECURITY_HEADERS: Mapping[str, str] = MappingProxyType({
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
})


class SecurityHeadersStage(Stage):
    """Unconditionally adds the hardening headers. Never short-circuits."""

    order = StageOrder.SECURITY

    def __init__(self, headers: Optional[Mapping[str, str]] = None, **overrides: str):
        """
        Args:
            headers: Replace the default header set entirely.
            **overrides: Adjust single headers, with underscores for dashes:
                         SecurityHeadersStage(X_Frame_Options="DENY")
        """
        merged = Headers(DEFAULT_SECURITY_HEADERS if headers is None else headers)
        for key, value in overrides.items():
            merged[key.replace("_", "-")] = value
        self.headers: Mapping[str, str] = MappingProxyType(dict(merged.items()))

    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        self.apply(response)
        return CONTINUE

    def apply(self, response: HTTPResponse) -> HTTPResponse:
        """Add the headers to a response built outside the pipeline."""
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
