"""
=============================================================================
ROUTE DISPATCH AND NOT-FOUND STAGES
=============================================================================

    RouteDispatchStage
        route matched      → run handler → Terminal(handler response)
        no route matched   → fallback (production bundle), if configured
                               answered → Terminal
                               declined → Continue
        handler raised     → exception propagates to the error stage

    NotFoundStage
        always             → Terminal(404 {"error": "Route not found"})

=============================================================================
REQUEST TIMEOUT
=============================================================================

With a timeout configured, each handler call gets its own thread while
the worker thread waits on its future:

    worker thread ──start──► handler thread
         │                        │
         └── future.result(timeout)
                 │
                 ├── result in time    → Terminal(response)
                 └── TimeoutError      → raise RequestTimeout
                                           └─► error translation (500)

The clock starts when the handler starts; there is no shared handler
queue to wait in, so a few hung handlers cannot push healthy ones past
their deadline. Concurrency is already bounded by the server's worker
pool.

Python threads cannot be killed. A timed-out handler keeps running in the
background and its eventual result is discarded; side effects it already
made stay made. close() reports any that are still running.
=============================================================================
"""

from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Optional, Set
import logging
import threading

from ..errors import RequestTimeout, RouteNotFound
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.router import Handler, Router
from .base import CONTINUE, Outcome, Stage, StageOrder, StageResult, Terminal


logger = logging.getLogger(__name__)


# A fallback answers an unmatched request or declines with None
Fallback = Callable[[HTTPRequest], Optional[HTTPResponse]]


class RouteDispatchStage(Stage):
    """Delegates to the matching route handler."""

    order = StageOrder.DISPATCH

    def __init__(
        self,
        router: Router,
        fallback: Optional[Fallback] = None,
        timeout: Optional[float] = None,
    ):
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.router = router
        self.fallback = fallback
        self.timeout = timeout
        self._abandoned: Set[threading.Thread] = set()
        self._lock = threading.Lock()

    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        match = self.router.match(request.method, request.path)

        if match is None:
            if self.fallback is not None:
                answer = self.fallback(request)
                if answer is not None:
                    return Terminal(answer, Outcome.HANDLER_RESPONSE)
            return CONTINUE

        request.path_params = match.params
        return Terminal(self._invoke(match.route.handler, request), Outcome.HANDLER_RESPONSE)

    def _invoke(self, handler: Handler, request: HTTPRequest) -> HTTPResponse:
        if self.timeout is None:
            result = handler(request)
        else:
            result = self._invoke_with_timeout(handler, request)

        if not isinstance(result, HTTPResponse):
            raise TypeError(
                f"Handler for {request.method} {request.path} returned "
                f"{type(result).__name__}, expected HTTPResponse"
            )
        return result

    def _invoke_with_timeout(self, handler: Handler, request: HTTPRequest) -> HTTPResponse:
        future: Future = Future()

        def run():
            future.set_running_or_notify_cancel()
            try:
                future.set_result(handler(request))
            except Exception as e:
                future.set_exception(e)

        thread = threading.Thread(target=run, name="splitstack-handler", daemon=True)
        thread.start()
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            with self._lock:
                self._abandoned = {t for t in self._abandoned if t.is_alive()}
                self._abandoned.add(thread)
            logger.warning(
                f"Handler for {request.method} {request.path} "
                f"exceeded {self.timeout:g}s timeout"
            )
            raise RequestTimeout(self.timeout)

    @property
    def abandoned_handlers(self) -> int:
        """Timed-out handler threads that have not finished yet."""
        with self._lock:
            return sum(1 for thread in self._abandoned if thread.is_alive())

    def close(self) -> None:
        """Report timed-out handlers still running at shutdown."""
        still_running = self.abandoned_handlers
        if still_running:
            logger.warning(f"{still_running} timed-out handler(s) still running at shutdown")


class NotFoundStage(Stage):
    """Reached only when nothing matched and nothing failed."""

    order = StageOrder.NOT_FOUND

    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        logger.debug(f"No route for {request.method} {request.path}")
        return Terminal.reject(RouteNotFound(request.method, request.path), Outcome.NOT_FOUND)
