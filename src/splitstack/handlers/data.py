"""
Sample data endpoints.

    GET  /api/data  →  200 {"message": "Data from server", "data": [...]}
    POST /api/data  →  201 {"message": "Data received", "data": <body>}

Items live in process memory for the lifetime of the server. A real
deployment replaces DataStore with its persistence layer; the handlers
only need add() and list().
"""

from http import HTTPStatus
from typing import Any, Dict, List, Optional
import logging
import threading

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, error_response, json_response
from ..http.router import Router


logger = logging.getLogger(__name__)


class DataStore:
    """Thread-safe in-memory list of submitted items."""

    def __init__(self) -> None:
        self._items: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def add(self, item: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self._items.append(item)
        return item

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class DataHandler:
    def __init__(self, store: Optional[DataStore] = None):
        self.store = store if store is not None else DataStore()

    def list_items(self, request: HTTPRequest) -> HTTPResponse:
        return json_response({"message": "Data from server", "data": self.store.list()})

    def create_item(self, request: HTTPRequest) -> HTTPResponse:
        body = request.parsed_body
        if not isinstance(body, dict):
            return error_response(HTTPStatus.BAD_REQUEST, "Request body must be a JSON object")

        item = self.store.add(body)
        logger.debug(f"Stored item with keys {sorted(item)}")
        return json_response({"message": "Data received", "data": item}, status=HTTPStatus.CREATED)

    def register(self, router: Router, path: str = "/data") -> "DataHandler":
        router.get(path, name="list_data")(self.list_items)
        router.post(path, name="create_data")(self.create_item)
        return self
