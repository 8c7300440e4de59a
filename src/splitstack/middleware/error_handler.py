"""
=============================================================================
ERROR TRANSLATION STAGE (CATCH-ALL)
=============================================================================

Any exception that escapes a stage or a route handler lands here exactly
once. It becomes a HandlerFailure, is logged server-side with its full
traceback, and is answered with a generic 500.

=============================================================================
INFORMATION-DISCLOSURE BOUNDARY
=============================================================================

    mode = development          mode = production / test / unset
    ──────────────────          ────────────────────────────────
    500                         500
    {                           {
      "error": "Something         "error": "Something went wrong!"
                went wrong!",   }
      "message": "division
                  by zero",
      "stack": ["Traceback...",
                ...]
    }

Status code and "error" text are identical in every mode. Only an explicit
development mode adds the diagnostic fields: stack traces reveal file
paths, library versions and sometimes data.
=============================================================================
"""

import logging
import traceback

from ..errors import HandlerFailure
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, error_response
from .base import CatchAllStage


logger = logging.getLogger(__name__)


class ErrorTranslationStage(CatchAllStage):
    """Converts unhandled failures into a uniform, information-safe 500."""

    def __init__(self, expose_details: bool = False):
        """
        Args:
            expose_details: Include message and stack in the body.
                            Only ever enabled for development mode.
        """
        self.expose_details = expose_details

    def translate(self, request: HTTPRequest, exc: BaseException) -> HTTPResponse:
        failure = exc if isinstance(exc, HandlerFailure) else HandlerFailure(exc)
        cause = failure.cause if failure.cause is not None else failure
        if cause.__traceback__ is None:
            # Synthesized cause (timeouts): the failure itself holds the raise site
            cause = failure
        request.context["error"] = failure

        logger.error(
            f"Unhandled failure in {request.method} {request.path} "
            f"(request {request.context.get('request_id', '-')}): "
            f"{type(cause).__name__}: {failure.detail}",
            exc_info=(type(cause), cause, cause.__traceback__),
        )

        if not self.expose_details:
            return failure.to_response()

        stack = traceback.format_exception(type(cause), cause, cause.__traceback__)
        return error_response(
            failure.status,
            failure.message,
            message=failure.detail,
            stack="".join(stack).splitlines(),
        )
