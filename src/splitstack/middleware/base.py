"""
=============================================================================
STAGE PIPELINE
=============================================================================

The server side of the request pipeline: an explicit, ordered list of stage
objects, each returning a tagged result instead of calling "next".

=============================================================================
THE STAGE CONTRACT
=============================================================================

    stage.process(request, response_in_progress) → Continue | Terminal

    Continue            hand the request to the next stage
    Terminal(response)  stop here; this response is the answer
    raise               mark the exchange for the catch-all error stage

A stage never calls the next stage itself, so it is structurally
impossible for a stage to emit a response and also run a later stage.

Stages that must observe the FINAL response (access logging) implement the
optional complete() hook. The runner calls it, in reverse order, on every
stage that was entered, after the terminal response exists. That makes
those stages wrap dispatch instead of strictly preceding it, and they run
even when a later stage fails.

=============================================================================
REQUEST FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   request                                                            │
    │     │                                                                │
    │     ▼                                                                │
    │   SecurityHeaders ──► OriginPolicy ──► AdmissionControl ──►         │
    │         │                  │ reject          │ reject               │
    │         │                  ▼                 ▼                      │
    │   AccessLog ──► BodyParser ──► RouteDispatch ──► ErrorTranslation   │
    │                     │ reject        │ handler       (pass-through)  │
    │                     ▼               ▼                  │            │
    │                                                        ▼            │
    │                                                    NotFound         │
    │                                                                      │
    │   any exception ─────────────────────────► ErrorTranslation.translate│
    │                                                                      │
    │   terminal response                                                  │
    │     + headers accumulated on the in-progress response               │
    │     → complete() hooks in reverse (AccessLog logs here)             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Exactly one Outcome is recorded per request in request.context["outcome"].

=============================================================================
ORDERING
=============================================================================

The order of the built-in stages is an invariant (rate limiting before
dispatch, body parsing before dispatch, and so on). Each built-in stage
declares its StageOrder rank and StagePipeline.add() refuses to place a
stage before one of a higher rank. Custom stages leave order as None and
can go anywhere.
=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, List, Optional, Union
import logging

from ..errors import PipelineError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


class StageOrder(IntEnum):
    SECURITY = 10
    ORIGIN = 20
    ADMISSION = 30
    ACCESS_LOG = 40
    BODY = 50
    DISPATCH = 60
    ERROR_TRANSLATION = 70
    NOT_FOUND = 80


class Outcome(str, Enum):
    """The terminal state a request ends in."""

    REJECTED_BY_ORIGIN = "rejected-by-origin"
    PREFLIGHT = "preflight"
    REJECTED_BY_ADMISSION = "rejected-by-admission"
    REJECTED_BY_PARSE = "rejected-by-parse"
    HANDLER_RESPONSE = "handler-response"
    NOT_FOUND = "not-found"
    ERROR_TRANSLATED = "error-translated"


# =============================================================================
# STAGE RESULTS
# =============================================================================

@dataclass(frozen=True)
class Continue:
    """Hand the request to the next stage."""


CONTINUE = Continue()


@dataclass(frozen=True)
class Terminal:
    """Stop the traversal; response is the answer."""

    response: HTTPResponse
    outcome: Outcome = Outcome.HANDLER_RESPONSE
    error: Optional[PipelineError] = None

    @classmethod
    def reject(cls, error: PipelineError, outcome: Outcome) -> "Terminal":
        return cls(response=error.to_response(), outcome=outcome, error=error)


StageResult = Union[Continue, Terminal]


class Stage(ABC):
    """
    One unit of request processing.

        class TagStage(Stage):
            def process(self, request, response):
                response.set_header("X-Tag", "on")    # add headers only
                return CONTINUE

    Stages must not keep per-request state on self: the same instance
    serves every worker thread concurrently. Use request.context.
    """

    order: Optional[StageOrder] = None

    @abstractmethod
    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        """Continue, short-circuit with Terminal, or raise."""

    def complete(self, request: HTTPRequest, response: HTTPResponse) -> None:
        """Called with the terminal response once it exists."""
        return None

    @property
    def name(self) -> str:
        return self.__class__.__name__


class CatchAllStage(Stage):
    """
    A stage that also turns any escaped exception into a response.

    In the forward pass it does nothing: reaching it means nothing failed.
    """

    order = StageOrder.ERROR_TRANSLATION

    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        return CONTINUE

    @abstractmethod
    def translate(self, request: HTTPRequest, exc: BaseException) -> HTTPResponse:
        """Build the response for an unhandled failure."""


class StagePipeline:
    """
    Runs a request through the ordered stage list.

        pipeline = StagePipeline()
        pipeline.use(SecurityHeadersStage(), OriginPolicyStage(...), ...)
        response = pipeline.handle(request)

    The pipeline itself is stateless per request and safe to call from
    many worker threads at once.
    """

    def __init__(self) -> None:
        self._stages: List[Stage] = []
        self._catch_all: Optional[CatchAllStage] = None

    def add(self, stage: Stage) -> "StagePipeline":
        if stage.order is not None:
            for existing in self._stages:
                if existing.order is not None and existing.order > stage.order:
                    raise ValueError(
                        f"{stage.name} must come before {existing.name} in the pipeline"
                    )

        if isinstance(stage, CatchAllStage):
            if self._catch_all is not None:
                raise ValueError("Pipeline already has a catch-all error stage")
            self._catch_all = stage

        self._stages.append(stage)
        logger.debug(f"Added stage: {stage.name}")
        return self

    def use(self, *stages: Stage) -> "StagePipeline":
        for stage in stages:
            self.add(stage)
        return self

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        # ═══════════════════════════════════════════════════════════════
        # FORWARD PASS
        # ═══════════════════════════════════════════════════════════════
        progress = HTTPResponse()
        entered: List[Stage] = []
        terminal: Optional[Terminal] = None

        try:
            for stage in self._stages:
                entered.append(stage)
                result = stage.process(request, progress)

                if isinstance(result, Terminal):
                    terminal = result
                    break
                if not isinstance(result, Continue):
                    raise TypeError(
                        f"{stage.name}.process() returned {result!r}, "
                        f"expected Continue or Terminal"
                    )

            if terminal is None:
                raise LookupError(f"No stage produced a response for {request.method} {request.path}")

        except Exception as exc:
            if self._catch_all is None:
                raise
            terminal = Terminal(
                response=self._catch_all.translate(request, exc),
                outcome=Outcome.ERROR_TRANSLATED,
            )

        # ═══════════════════════════════════════════════════════════════
        # TERMINAL RESPONSE
        # ═══════════════════════════════════════════════════════════════
        response = terminal.response
        response.merge_headers(progress.headers)
        request.context["outcome"] = terminal.outcome
        if terminal.error is not None:
            request.context["error"] = terminal.error

        # ═══════════════════════════════════════════════════════════════
        # COMPLETION HOOKS (reverse order, always run)
        # ═══════════════════════════════════════════════════════════════
        for stage in reversed(entered):
            try:
                stage.complete(request, response)
            except Exception:
                # The response is already decided; a broken hook must not replace it
                logger.exception(f"Completion hook of {stage.name} failed")

        return response

    @property
    def stages(self) -> List[Stage]:
        return list(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)
