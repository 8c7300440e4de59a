"""
=============================================================================
AUTH INTERCEPTOR
=============================================================================

Two hooks, installed once on the HTTP client, so no call site repeats
credential handling:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   caller ──► on_request ──► transport (+ retries) ──► on_response ──► caller
    │                │                                       │             │
    │        Authorization:                         401: clear credential, │
    │        Bearer <token>                              redirect to login │
    │        (if one is stored)                     4xx/5xx: raise         │
    │                                               HTTPStatusError        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The response hook runs after httpx's transport-level retries, so it sees
each logical response exactly once. A 401 is still raised to the caller
after the session is reset; the caller's own error handling always runs.
=============================================================================
"""

import logging

import httpx

from .credentials import CredentialProvider
from .navigation import Navigator


logger = logging.getLogger(__name__)


class AuthInterceptor:
    """
    Bearer-token injection and 401 handling for httpx event hooks.

        auth = AuthInterceptor(credentials, navigator)
        httpx.Client(event_hooks=auth.event_hooks())
    """

    def __init__(self, credentials: CredentialProvider, navigator: Navigator, login_path: str = "/login"):
        self.credentials = credentials
        self.navigator = navigator
        self.login_path = login_path

    # =========================================================================
    # SYNC HOOKS
    # =========================================================================

    def on_request(self, request: httpx.Request) -> None:
        token = self.credentials.get()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

    def on_response(self, response: httpx.Response) -> None:
        if response.status_code == httpx.codes.UNAUTHORIZED:
            self._end_session(response)
        if response.is_error:
            # Load the body so it is readable from the raised error
            response.read()
            response.raise_for_status()

    # =========================================================================
    # ASYNC HOOKS
    # =========================================================================

    async def aon_request(self, request: httpx.Request) -> None:
        self.on_request(request)

    async def aon_response(self, response: httpx.Response) -> None:
        if response.status_code == httpx.codes.UNAUTHORIZED:
            self._end_session(response)
        if response.is_error:
            await response.aread()
            response.raise_for_status()

    def _end_session(self, response: httpx.Response) -> None:
        logger.info(f"{response.request.method} {response.request.url} returned 401; clearing session")
        self.credentials.clear()
        self.navigator.redirect(self.login_path)

    def event_hooks(self) -> dict:
        return {"request": [self.on_request], "response": [self.on_response]}

    def async_event_hooks(self) -> dict:
        return {"request": [self.aon_request], "response": [self.aon_response]}
