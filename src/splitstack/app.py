"""
=============================================================================
APPLICATION ASSEMBLY
=============================================================================

create_app() wires configuration into the fixed stage stack:

    1. SecurityHeadersStage     hardening headers on every response
    2. OriginPolicyStage        CLIENT_URL allow-list
    3. AdmissionControlStage    RATE_LIMIT_MAX per RATE_LIMIT_WINDOW_MS under /api
    4. AccessLogStage           dev / combined / json
    5. BodyParserStage          BODY_LIMIT
    6. RouteDispatchStage       /api routes (+ client bundle in production)
    7. ErrorTranslationStage    500, diagnostics only in development
    8. NotFoundStage            404 {"error": "Route not found"}

    app = create_app(ServerConfig.from_env())
    HTTPServer(app).run()

Everything stateful is injectable for tests: the rate-limit store and its
clock, the router, and the data store behind /api/data.
=============================================================================
"""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Callable, Optional, Union
import logging
import time

from .config import ServerConfig
from .handlers.data import DataHandler, DataStore
from .handlers.health import HealthHandler
from .handlers.static import ClientBundleHandler
from .http.request import HTTPRequest
from .http.response import HTTPResponse, error_response
from .http.router import Router
from .middleware.base import StagePipeline
from .middleware.body import BodyParserStage
from .middleware.cors import CORSConfig, OriginPolicyStage
from .middleware.dispatch import NotFoundStage, RouteDispatchStage
from .middleware.error_handler import ErrorTranslationStage
from .middleware.logging import AccessLogStage
from .middleware.rate_limit import AdmissionControlStage, InMemoryWindowStore, WindowStore
from .middleware.security import SecurityHeadersStage


logger = logging.getLogger(__name__)


@dataclass
class Application:
    """The assembled pipeline plus the pieces the transport needs."""

    config: ServerConfig
    pipeline: StagePipeline
    router: Router
    security: SecurityHeadersStage
    dispatch: RouteDispatchStage
    window_store: WindowStore
    data_store: DataStore = field(default_factory=DataStore)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return self.pipeline.handle(request)

    def transport_error(self, status: Union[HTTPStatus, int], message: str) -> HTTPResponse:
        """
        Response for a request that never became an HTTPRequest
        (unparseable, oversized, timed out mid-read). It skips the
        pipeline but still carries the hardening headers.
        """
        return self.security.apply(error_response(status, message))

    def close(self) -> None:
        self.dispatch.close()


def create_app(
    config: Optional[ServerConfig] = None,
    router: Optional[Router] = None,
    window_store: Optional[WindowStore] = None,
    clock: Callable[[], float] = time.monotonic,
    data_store: Optional[DataStore] = None,
) -> Application:
    """
    Build the application for config.

    Args:
        config: Server configuration; validated here.
        router: Pre-populated router. The API routes are added to it.
        window_store: Rate-limit state; a fresh in-memory store by default.
        clock: Time source for admission windows (monotonic seconds).
        data_store: Backing store for /api/data.
    """
    config = config or ServerConfig()
    config.validate()

    router = router or Router()
    data_store = data_store if data_store is not None else DataStore()

    api = router.group(config.api_prefix)
    HealthHandler().register(api)
    DataHandler(data_store).register(api)

    fallback = None
    if config.is_production:
        fallback = ClientBundleHandler(config.client_dist_dir, api_prefix=config.api_prefix)
        logger.info(f"Serving client bundle from {fallback.root_dir}")

    window_store = window_store or InMemoryWindowStore(window_seconds=config.rate_limit_window)

    security = SecurityHeadersStage()
    dispatch = RouteDispatchStage(
        router,
        fallback=fallback,
        timeout=config.request_timeout,
    )

    pipeline = StagePipeline().use(
        security,
        OriginPolicyStage(CORSConfig(allow_origins=list(config.allowed_origins))),
        AdmissionControlStage(
            store=window_store,
            max_requests=config.rate_limit_max,
            path_prefix=config.api_prefix,
            clock=clock,
        ),
        AccessLogStage(log_format=config.access_log_format),
        BodyParserStage(limit=config.body_limit),
        dispatch,
        ErrorTranslationStage(expose_details=config.is_development),
        NotFoundStage(),
    )

    mode = config.mode.value if config.mode else "unset"
    logger.debug(f"Pipeline ready ({mode} mode): {', '.join(s.name for s in pipeline)}")

    return Application(
        config=config,
        pipeline=pipeline,
        router=router,
        security=security,
        dispatch=dispatch,
        window_store=window_store,
        data_store=data_store,
    )
