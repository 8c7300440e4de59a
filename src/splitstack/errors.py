"""
=============================================================================
PIPELINE ERROR TAXONOMY
=============================================================================

Every way a request can fail to reach a successful handler response has
exactly one class here.

    ┌───────────────────┬────────┬─────────────────────────────────────────┐
    │ Error             │ Status │ Produced by                             │
    ├───────────────────┼────────┼─────────────────────────────────────────┤
    │ OriginRejected    │  403   │ OriginPolicyStage                       │
    │ AdmissionExceeded │  429   │ AdmissionControlStage                   │
    │ BodyInvalid       │ 400/413│ BodyParserStage                         │
    │ RouteNotFound     │  404   │ NotFoundStage                           │
    │ HandlerFailure    │  500   │ ErrorTranslationStage (catch-all)       │
    │ RequestTimeout    │  500   │ RouteDispatchStage, via error stage     │
    └───────────────────┴────────┴─────────────────────────────────────────┘

The first four are EXPECTED conditions. The stage that detects one returns
a Terminal carrying it, with a stable status and a minimal body. They are
never logged as failures.

HandlerFailure is the only class that passes through error translation.
It wraps whatever exception escaped, is logged with its full traceback,
and always answers with the same generic body.
=============================================================================
"""

from http import HTTPStatus
from typing import Dict, Optional

from .http.response import HTTPResponse, error_response


class PipelineError(Exception):
    """Base class: an error that knows which response it becomes."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message: str = "Something went wrong!"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None):
        self.message = message or self.default_message
        if status is not None:
            self.status = HTTPStatus(status)
        super().__init__(self.message)

    def headers(self) -> Dict[str, str]:
        return {}

    def to_response(self) -> HTTPResponse:
        return error_response(self.status, self.message, headers=self.headers())


class OriginRejected(PipelineError):
    status = HTTPStatus.FORBIDDEN
    default_message = "Origin not allowed"

    def __init__(self, origin: str, message: Optional[str] = None):
        self.origin = origin
        super().__init__(message)


class AdmissionExceeded(PipelineError):
    status = HTTPStatus.TOO_MANY_REQUESTS
    default_message = "Too many requests, please try again later."

    def __init__(self, limit: int, retry_after: int, message: Optional[str] = None):
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(message)

    def headers(self) -> Dict[str, str]:
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(self.retry_after),
        }


class BodyInvalid(PipelineError):
    """Malformed (400) or oversized (413) request body."""

    status = HTTPStatus.BAD_REQUEST
    default_message = "Malformed request body"

    @classmethod
    def too_large(cls, size: int, limit: int) -> "BodyInvalid":
        error = cls("Payload too large", status=HTTPStatus.REQUEST_ENTITY_TOO_LARGE)
        error.size = size
        error.limit = limit
        return error


class RouteNotFound(PipelineError):
    status = HTTPStatus.NOT_FOUND
    default_message = "Route not found"

    def __init__(self, method: str = "", path: str = ""):
        self.method = method
        self.path = path
        super().__init__()


class HandlerFailure(PipelineError):
    """An otherwise-unhandled failure from business logic or infrastructure."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Something went wrong!"

    def __init__(self, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.cause = cause
        super().__init__(message)

    @property
    def detail(self) -> str:
        """The diagnostic message: the underlying cause, not the generic text."""
        if self.cause is None:
            return self.message
        return str(self.cause) or type(self.cause).__name__


class RequestTimeout(HandlerFailure):
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(TimeoutError(f"Handler did not complete within {timeout:g}s"))
