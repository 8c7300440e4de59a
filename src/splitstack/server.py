"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the transport to the application: sockets and threads below,
the stage pipeline above.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──accept──► WorkerPool ──► _process_connection()     │
    │                                                 │                    │
    │                              Connection.read_request()               │
    │                                                 │                    │
    │                              RequestParser.parse()                   │
    │                                                 │                    │
    │                              Application.handle()  (stage pipeline)  │
    │                                                 │                    │
    │                              Connection.send_response()              │
    │                                                 │                    │
    │                              keep-alive? ──yes──┘   no ──► close     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Requests that never make it to an HTTPRequest (malformed request line,
oversized upload, bad Content-Length, chunked framing) are answered here, via
Application.transport_error(), so they still carry the hardening headers.

    server = HTTPServer(create_app(config), config)
    server.run()        # blocks; Ctrl+C or SIGTERM to stop
=============================================================================
"""

from http import HTTPStatus
from typing import Optional, Tuple
import logging
import threading

from .app import Application, create_app
from .config import ServerConfig
from .core.connection import Connection, RequestTooLarge
from .core.socket_server import SocketServer
from .core.worker_pool import WorkerPool
from .http.request import HTTPParseError, HTTPRequest, RequestParser
from .http.response import HTTPResponse


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded HTTP/1.1 server for one Application.

    Runs in the foreground with run(), or in a background thread with
    start_background() (used by the integration tests).
    """

    def __init__(self, app: Optional[Application] = None, config: Optional[ServerConfig] = None):
        self.app = app or create_app(config)
        self.config = config or self.app.config

        self._parser = RequestParser(
            max_request_size=self.config.max_request_size,
            trust_proxy=self.config.trust_proxy,
        )
        self._socket_server = SocketServer(self.config)
        self._worker_pool = WorkerPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._running = False
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def url(self) -> str:
        host, port = self.address
        return f"http://{host}:{port}"

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """Start serving. Blocks until shutdown() or a signal."""
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._serve()

    def start_background(self, timeout: float = 5.0) -> "HTTPServer":
        """Serve from a daemon thread and return once the socket is listening."""
        self._thread = threading.Thread(target=self._serve, name="splitstack-server", daemon=True)
        self._thread.start()
        if not self._socket_server.wait_until_ready(timeout):
            raise RuntimeError(f"Server did not start within {timeout}s")
        return self

    def _serve(self):
        self._running = True
        self._worker_pool.start()

        mode = self.config.mode.value if self.config.mode else "unset"
        logger.info(
            f"Starting {self.config.server_name} on {self.config.host}:{self.config.port} "
            f"({mode} mode, {self.config.min_workers}-{self.config.max_workers} workers)"
        )
        for route in self.app.router.routes():
            logger.debug(f"  {route.method:7} {route.path}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("splitstack").setLevel(level)

    def shutdown(self, timeout: float = 5.0):
        """Stop accepting and wait for the serving thread, if any."""
        self._socket_server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._worker_pool.shutdown(wait=True, timeout=30.0)
        self.app.close()
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        submitted = self._worker_pool.submit(lambda: self._process_connection(conn))
        if not submitted:
            logger.warning(f"[{conn.id}] Worker queue full, rejecting {conn.client_ip}")
            self._send_transport_error(
                conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server busy, please try again later."
            )
            conn.close()

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection (runs on a worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except RequestTooLarge as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_transport_error(conn, HTTPStatus.REQUEST_ENTITY_TOO_LARGE, "Payload too large")
                    break
                except TimeoutError:
                    logger.warning(f"[{conn.id}] Timed out waiting for request from {conn.client_ip}")
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                    self._send_transport_error(conn, e.status_code, str(e))
                    break

                response = self._dispatch(conn, request)
                keep_alive = self.config.keep_alive and request.is_keep_alive

                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
                else:
                    response.headers["Connection"] = "close"

                payload = response.to_bytes(
                    self.config.server_name,
                    include_body=request.method != "HEAD",
                )
                if not conn.send_response(payload):
                    break
                if not keep_alive:
                    break
                conn.set_keep_alive()

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self.app.handle(request)
        except Exception:
            # The pipeline translates handler failures itself; anything that
            # escapes is a stage bug
            logger.exception(f"[{conn.id}] Unhandled error in pipeline for {request.method} {request.path}")
            return self.app.transport_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Something went wrong!")

    def _send_transport_error(self, conn: Connection, status, message: str):
        response = self.app.transport_error(status, message)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))
