"""Where the client session goes after authentication fails."""

from abc import ABC, abstractmethod
from typing import List, Optional
import logging


logger = logging.getLogger(__name__)


class Navigator(ABC):
    """The active session's location. Only redirects are needed."""

    @abstractmethod
    def redirect(self, path: str) -> None:
        pass


class MemoryNavigator(Navigator):
    """Records redirects; location is the most recent one."""

    def __init__(self, location: str = "/"):
        self.location = location
        self.history: List[str] = []

    def redirect(self, path: str) -> None:
        logger.info(f"Redirecting session to {path}")
        self.history.append(path)
        self.location = path

    @property
    def last_redirect(self) -> Optional[str]:
        return self.history[-1] if self.history else None
