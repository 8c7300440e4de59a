"""
=============================================================================
ADMISSION CONTROL (FIXED-WINDOW RATE LIMITING)
=============================================================================

Caps how many requests one client identity may make to the API within a
time window. The defaults allow 100 requests per 15 minutes under /api.

=============================================================================
FIXED WINDOW
=============================================================================

Each identity owns a counter and the time its window started. The first
request opens a window; every request in it increments the counter; once
the window has elapsed the next request starts a fresh one.

    window = 15 min, max = 100

    t=00:00  request #1    count=1    admitted   (window opens)
    t=03:10  request #57   count=57   admitted
    t=07:42  request #100  count=100  admitted
    t=07:43  request #101  count=101  REJECTED   429, Retry-After: 437
    t=15:00  request       count=1    admitted   (window expired, reset)

Rejected requests still count, so hammering during a full window does not
earn anything. Windows are independent per identity.

Fixed windows are simple and cheap. The known trade-off: a client can
spend its full quota at the end of one window and again at the start of
the next.

=============================================================================
CONSISTENCY
=============================================================================

The whole read-expire-increment sequence for a key happens inside one
lock held by the store. Two concurrent requests from the same identity
can never both observe count=100 and both be admitted: the limit is
STRICT, with no overshoot.

The store is injectable. A shared external store (Redis INCR + EXPIRE)
can implement WindowStore without touching the stage; it then provides
whatever atomicity its INCR gives.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import logging
import math
import threading
import time

from ..errors import AdmissionExceeded
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import CONTINUE, Outcome, Stage, StageOrder, StageResult, Terminal


logger = logging.getLogger(__name__)


Clock = Callable[[], float]
KeyFunc = Callable[[HTTPRequest], str]


@dataclass(frozen=True)
class WindowState:
    """Snapshot of one identity's window after a hit."""

    count: int
    window_start: float
    window_seconds: float

    @property
    def reset_at(self) -> float:
        return self.window_start + self.window_seconds

    def seconds_until_reset(self, now: float) -> int:
        return max(0, math.ceil(self.reset_at - now))


class WindowStore(ABC):
    """Mapping of client identity → fixed-window counter."""

    def __init__(self, window_seconds: float):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.window_seconds = window_seconds

    @abstractmethod
    def hit(self, key: str, now: float) -> WindowState:
        """Atomically reset-if-expired, increment, and return the new state."""

    @abstractmethod
    def get(self, key: str) -> Optional[WindowState]:
        """Current state without counting a request."""

    @abstractmethod
    def reset(self, key: Optional[str] = None) -> None:
        """Forget one identity, or every identity when key is None."""

    @abstractmethod
    def purge(self, now: float) -> int:
        """Drop expired windows; return how many were removed."""


class InMemoryWindowStore(WindowStore):
    """
    Process-local window store: a dict guarded by one lock.

    Memory grows with the number of distinct identities seen in a window.
    Expired windows are purged every purge_interval seconds, on the
    request path, inside the same lock.
    """

    def __init__(self, window_seconds: float, purge_interval: Optional[float] = None):
        super().__init__(window_seconds)
        self.purge_interval = purge_interval if purge_interval is not None else window_seconds
        self._windows: Dict[str, WindowState] = {}
        self._lock = threading.Lock()
        self._last_purge: Optional[float] = None

    def hit(self, key: str, now: float) -> WindowState:
        with self._lock:
            if self._last_purge is None:
                self._last_purge = now
            elif now - self._last_purge >= self.purge_interval:
                self._purge_locked(now)
                self._last_purge = now

            state = self._windows.get(key)
            if state is None or now >= state.reset_at:
                state = WindowState(count=1, window_start=now, window_seconds=self.window_seconds)
            else:
                state = WindowState(
                    count=state.count + 1,
                    window_start=state.window_start,
                    window_seconds=self.window_seconds,
                )
            self._windows[key] = state
            return state

    def get(self, key: str) -> Optional[WindowState]:
        with self._lock:
            return self._windows.get(key)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def purge(self, now: float) -> int:
        with self._lock:
            return self._purge_locked(now)

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, state in self._windows.items() if now >= state.reset_at]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired rate limit windows")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


class AdmissionControlStage(Stage):
    """
    Rejects a client identity's requests beyond max_requests per window.

        AdmissionControlStage(
            store=InMemoryWindowStore(window_seconds=15 * 60),
            max_requests=100,
            path_prefix="/api",
        )

    Only paths under path_prefix are counted. Other paths (the client
    bundle, say) pass straight through.
    """

    order = StageOrder.ADMISSION

    def __init__(
        self,
        store: WindowStore,
        max_requests: int = 100,
        path_prefix: Optional[str] = "/api",
        key_func: Optional[KeyFunc] = None,
        clock: Clock = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.store = store
        self.max_requests = max_requests
        self.path_prefix = path_prefix.rstrip("/") if path_prefix else None
        self.key_func = key_func or self._default_key_func
        self.clock = clock

    def _default_key_func(self, request: HTTPRequest) -> str:
        return request.client_ip

    def in_scope(self, path: str) -> bool:
        if not self.path_prefix:
            return True
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")

    def process(self, request: HTTPRequest, response: HTTPResponse) -> StageResult:
        if not self.in_scope(request.path):
            return CONTINUE

        now = self.clock()
        key = self.key_func(request)
        state = self.store.hit(key, now)
        reset_in = state.seconds_until_reset(now)

        if state.count > self.max_requests:
            logger.warning(
                f"Rate limit exceeded for {key}: {state.count} requests "
                f"(limit {self.max_requests}), {request.method} {request.path}"
            )
            error = AdmissionExceeded(limit=self.max_requests, retry_after=reset_in)
            return Terminal.reject(error, Outcome.REJECTED_BY_ADMISSION)

        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(self.max_requests - state.count)
        response.headers["X-RateLimit-Reset"] = str(reset_in)
        return CONTINUE
