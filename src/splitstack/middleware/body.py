"""
=============================================================================
BODY DESERIALIZATION STAGE
=============================================================================

Turns request.body (raw bytes) into request.parsed_body according to the
declared Content-Type, before any handler sees the request.

    ┌──────────────────────────────────────┬──────────────────────────────┐
    │ Content-Type                         │ parsed_body                  │
    ├──────────────────────────────────────┼──────────────────────────────┤
    │ application/json, application/*+json │ json.loads(...)              │
    │ application/x-www-form-urlencoded    │ {"a": "1", "b": ["2", "3"]}  │
    │ text/*                               │ decoded str                  │
    │ anything else                        │ left as None (raw in .body)  │
    └──────────────────────────────────────┴──────────────────────────────┘

A JSON request with an empty body parses to {}, so handlers can always
treat parsed_body as a dict for JSON routes.

Failures short-circuit with BodyInvalid before dispatch:

    body larger than limit        → 413 {"error": "Payload too large"}
    undecodable / malformed body  → 400 {"error": "Malformed request body"}
=============================================================================
"""

from typing import Any, Dict, List, Union
from urllib.parse import parse_qs
import json
import logging

from ..errors import BodyInvalid
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import CONTINUE, Outcome, Stage, StageOrder, StageResult, Terminal


logger = logging.getLogger(__name__)

DEFAULT_BODY_LIMIT = 10 * 1024 * 1024  # 10 MB


class BodyParserStage(Stage):
    """Parses JSON, urlencoded and text bodies up to limit bytes."""

    order = StageOrder.BODY

    def __init__(self, limit: int = DEFAULT_BODY_LIMIT, strict_json: bool = False):
        """
        Args:
            limit: Maximum body size in bytes.
            strict_json: Only accept objects and arrays at the top level
                         of a JSON body.
        """
        if limit < 0:
            raise ValueError("limit must be >= 0")
        self.limit = limit
        self.strict_json = strict_json

    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        size = max(len(request.body), request.content_length)
        if size > self.limit:
            logger.info(f"Rejected {size}-byte body (limit {self.limit}) for {request.method} {request.path}")
            return Terminal.reject(BodyInvalid.too_large(size, self.limit), Outcome.REJECTED_BY_PARSE)

        content_type = request.content_type or ""
        try:
            if _is_json(content_type):
                request.parsed_body = self._parse_json(request)
            elif content_type == "application/x-www-form-urlencoded":
                request.parsed_body = self._parse_urlencoded(request)
            elif content_type.startswith("text/"):
                request.parsed_body = request.body.decode(request.charset)
        except (ValueError, LookupError) as exc:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors;
            # LookupError covers an unknown charset name
            logger.info(f"Malformed {content_type} body for {request.method} {request.path}: {exc}")
            return Terminal.reject(BodyInvalid(), Outcome.REJECTED_BY_PARSE)

        return CONTINUE

    def _parse_json(self, request: HTTPRequest) -> Any:
        if not request.body.strip():
            return {}
        data = json.loads(request.body.decode(request.charset))
        if self.strict_json and not isinstance(data, (dict, list)):
            raise ValueError("JSON body must be an object or an array")
        return data

    def _parse_urlencoded(self, request: HTTPRequest) -> Dict[str, Union[str, List[str]]]:
        text = request.body.decode(request.charset)
        parsed = parse_qs(text, keep_blank_values=True, strict_parsing=bool(text))
        return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


def _is_json(content_type: str) -> bool:
    return content_type == "application/json" or (
        content_type.startswith("application/") and content_type.endswith("+json")
    )
