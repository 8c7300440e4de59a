"""
=============================================================================
CORE TRANSPORT
=============================================================================

    SocketServer   bind / listen / accept, signal-driven shutdown
    Connection     one client socket: buffered reads, whole writes
    WorkerPool     bounded queue of worker threads

Nothing in here knows about HTTP semantics beyond request framing.
=============================================================================
"""

from .connection import Connection, ConnectionState, RequestTooLarge
from .socket_server import SocketServer
from .worker_pool import WorkerPool

__all__ = [
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "SocketServer",
    "WorkerPool",
]
