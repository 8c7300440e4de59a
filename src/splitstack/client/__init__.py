"""
Client-side request pipeline.

    ApiClient / AsyncApiClient   httpx clients with the interceptor installed
    AuthInterceptor              Bearer injection, 401 → clear + redirect
    CredentialProvider           MemoryCredentialStore, FileCredentialStore
    Navigator                    MemoryNavigator
"""

from .api import ApiClient, AsyncApiClient
from .credentials import CredentialProvider, FileCredentialStore, MemoryCredentialStore
from .interceptors import AuthInterceptor
from .navigation import MemoryNavigator, Navigator

__all__ = [
    "ApiClient",
    "AsyncApiClient",
    "AuthInterceptor",
    "CredentialProvider",
    "FileCredentialStore",
    "MemoryCredentialStore",
    "MemoryNavigator",
    "Navigator",
]
