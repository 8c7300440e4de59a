"""
=============================================================================
API CLIENT
=============================================================================

Every call to the server goes through one of these, so every call gets
the credential and the 401 handling:

    with ApiClient(ClientConfig.from_env(), FileCredentialStore(path)) as api:
        api.credentials.set(token)            # after login
        items = api.get("/data").json()       # Authorization: Bearer <token>

    async with AsyncApiClient(config, credentials) as api:
        await api.post("/data", json={"name": "x"})

Error statuses raise httpx.HTTPStatusError; the response (body loaded)
is on the exception.
=============================================================================
"""

from typing import Any, Optional
import logging

import httpx

from ..config import ClientConfig
from .credentials import CredentialProvider, MemoryCredentialStore
from .interceptors import AuthInterceptor
from .navigation import MemoryNavigator, Navigator


logger = logging.getLogger(__name__)


class _ApiClientBase:
    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        credentials: Optional[CredentialProvider] = None,
        navigator: Optional[Navigator] = None,
    ):
        self.config = config or ClientConfig()
        self.credentials = credentials if credentials is not None else MemoryCredentialStore()
        self.navigator = navigator if navigator is not None else MemoryNavigator()
        self.interceptor = AuthInterceptor(self.credentials, self.navigator, self.config.login_path)


class ApiClient(_ApiClientBase):
    """Synchronous client over httpx.Client."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        credentials: Optional[CredentialProvider] = None,
        navigator: Optional[Navigator] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(config, credentials, navigator)
        self._client = httpx.Client(
            base_url=self.config.api_base_url,
            timeout=self.config.timeout,
            event_hooks=self.interceptor.event_hooks(),
            transport=transport or httpx.HTTPTransport(retries=self.config.retries),
        )
        logger.debug(f"ApiClient ready for {self.config.api_base_url}")

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return self._client.request(method, url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class AsyncApiClient(_ApiClientBase):
    """Asynchronous client over httpx.AsyncClient."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        credentials: Optional[CredentialProvider] = None,
        navigator: Optional[Navigator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config, credentials, navigator)
        self._client = httpx.AsyncClient(
            base_url=self.config.api_base_url,
            timeout=self.config.timeout,
            event_hooks=self.interceptor.async_event_hooks(),
            transport=transport or httpx.AsyncHTTPTransport(retries=self.config.retries),
        )

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
