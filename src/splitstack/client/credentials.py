"""
=============================================================================
CREDENTIAL STORAGE
=============================================================================

The client keeps exactly one session credential: the bearer token issued
at login. Where it lives is a deployment detail, so the interceptor only
sees a CredentialProvider.

    MemoryCredentialStore   process lifetime (tests, scripts)
    FileCredentialStore     JSON file {"token": "..."}, survives restarts

Absent and empty are the same thing: get() returns None for both.
=============================================================================
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union
import json
import logging
import os
import threading


logger = logging.getLogger(__name__)


class CredentialProvider(ABC):
    """Get, set and clear the stored session credential."""

    @abstractmethod
    def get(self) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, token: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def __bool__(self) -> bool:
        return self.get() is not None


class MemoryCredentialStore(CredentialProvider):
    def __init__(self, token: Optional[str] = None):
        self._token = token or None
        self._lock = threading.Lock()

    def get(self) -> Optional[str]:
        with self._lock:
            return self._token

    def set(self, token: str) -> None:
        with self._lock:
            self._token = token or None

    def clear(self) -> None:
        with self._lock:
            self._token = None


class FileCredentialStore(CredentialProvider):
    """
    Token persisted as {"token": "..."} in a JSON file.

        store = FileCredentialStore("~/.config/myapp/session.json")

    The file is written with mode 0600. An unreadable or malformed file
    reads as "no credential" rather than failing the request.
    """

    KEY = "token"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def get(self) -> Optional[str]:
        with self._lock:
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                return None
            except (OSError, ValueError) as e:
                logger.warning(f"Ignoring unreadable credential file {self.path}: {e}")
                return None
        token = data.get(self.KEY) if isinstance(data, dict) else None
        return token if isinstance(token, str) and token else None

    def set(self, token: str) -> None:
        if not token:
            self.clear()
            return
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({self.KEY: token}, f)

    def clear(self) -> None:
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
