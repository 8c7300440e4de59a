"""
=============================================================================
SOCKET SERVER
=============================================================================

The TCP layer: bind, listen, accept, and hand each connection to a
callback. Everything HTTP happens above this.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   socket() ─► setsockopt() ─► bind() ─► listen() ─► accept() loop   │
    │                                                        │            │
    │                                     connection_handler(Connection)  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

accept() times out every second so the loop notices shutdown() promptly
without needing a wake-up pipe.

Signal handlers (SIGTERM from docker stop / systemd, SIGINT from Ctrl+C)
can only be installed from the main thread. When the server runs in a
background thread, as it does in tests, shutdown() must be called
directly instead.
=============================================================================
"""

from typing import Callable, Optional, Tuple
import logging
import signal
import socket
import threading

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

        server = SocketServer(config)
        server.start(handle_connection)  # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None
        self._ready_event = threading.Event()
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (ip, port); with port 0 this is the port the OS chose."""
        return self._bound_address or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        # Rebind immediately after restart instead of waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """Bind and accept connections. Blocks until shutdown()."""
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]
        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        logger.info(f"Server listening on {self.address[0]}:{self.address[1]}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Mostly for tests."""
        return self._ready_event.wait(timeout)

    def shutdown(self):
        """Stop accepting. Safe to call from any thread, more than once."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()
        if self._socket:
            self._socket.close()
            self._socket = None
        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._shutdown_event.wait(timeout)
