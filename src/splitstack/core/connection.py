"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket: buffered request reads, whole-response writes,
and a clean close.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     CONNECTION LIFECYCLE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE         │
    │              ▲                                        │             │
    │              └────────────────────────────────────────┘             │
    │                                                                      │
    │   any state ──► CLOSING ──► CLOSED                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

TCP delivers bytes in arbitrary chunks, so read_request() buffers until
the header terminator arrives and then reads exactly Content-Length body
bytes. Bytes past the end belong to the next keep-alive request and stay
in the buffer.

A declared Content-Length beyond the transport limit is refused before
any body byte is read, so an oversized upload costs no memory.
=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import logging
import re
import socket
import time
import uuid


logger = logging.getLogger(__name__)

_CONTENT_LENGTH = re.compile(rb"^content-length:[ \t]*(\d+)[ \t]*$", re.IGNORECASE | re.MULTILINE)


class RequestTooLarge(ValueError):
    """The request exceeds the transport read limit."""


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """One accepted client socket."""

    socket: socket.socket
    address: tuple[str, int]
    buffer_size: int = 8192
    max_request_size: int = 10 * 1024 * 1024
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0
    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        Returns:
            The request bytes, or None if the client closed the connection
            (or went idle past the keep-alive timeout).

        Raises:
            TimeoutError: The first request did not arrive in time.
            RequestTooLarge: Headers or declared body exceed the limit.
        """
        self.state = ConnectionState.READING

        # Waiting for a follow-up request on a kept-alive connection
        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise RequestTooLarge(f"Request headers too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise RequestTooLarge(f"Declared body too large: {content_length} bytes")

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Closed mid-body; the parser reports the short body
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        # Only the framing matters here; RequestParser validates properly
        match = _CONTENT_LENGTH.search(headers.replace(b"\r\n", b"\n"))
        return int(match.group(1)) if match else 0

    def send_response(self, data: bytes) -> bool:
        """
        Send a whole response with sendall().

        Returns False if the client has gone away. Nothing is retried.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.debug(f"[{self.id}] Client disconnected before response was sent: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def close(self):
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING
        try:
            # Half-close, then drain briefly: closing with unread input
            # sends RST, which can destroy a response still in flight
            self.socket.shutdown(socket.SHUT_WR)
            self.socket.settimeout(0.1)
            deadline = time.monotonic() + 0.5
            while time.monotonic() < deadline and self.socket.recv(self.buffer_size):
                pass
        except OSError:
            pass  # Peer already gone
        self.socket.close()
        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
