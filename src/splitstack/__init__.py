"""
=============================================================================
SPLITSTACK - API Server and Client Pipeline for Split Web Applications
=============================================================================

The server half of a split client/server web application, plus the
client-side request pipeline that talks to it.

    ┌──────────── client ────────────┐          ┌──────────── server ─────────────┐
    │                                │          │                                 │
    │  ApiClient                     │   HTTP   │  security headers               │
    │    on_request: Bearer token ───┼─────────►│  origin policy (CLIENT_URL)     │
    │                                │          │  admission control (/api)       │
    │    on_response: 401 → clear    │◄─────────┼─ access log                     │
    │                 credential,    │          │  body parser                    │
    │                 go to /login   │          │  dispatch → /api/health, /data  │
    │                                │          │  error translation / 404        │
    └────────────────────────────────┘          └─────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    splitstack/
    ├── __main__.py          # python -m splitstack
    ├── app.py               # create_app(): the fixed stage stack
    ├── server.py            # HTTPServer: keep-alive loop over the app
    ├── config.py            # ServerConfig / ClientConfig (env + .env)
    ├── errors.py            # PipelineError taxonomy
    ├── core/                # sockets, connections, worker threads
    ├── http/                # request, response, headers, router
    ├── middleware/          # the pipeline stages
    ├── handlers/            # health, data, client bundle
    └── client/              # httpx-based client pipeline

=============================================================================
QUICK START
=============================================================================

    from splitstack import HTTPServer, ServerConfig, create_app

    config = ServerConfig.from_env()
    HTTPServer(create_app(config), config).run()

=============================================================================
"""

__version__ = "1.0.0"

from .app import Application, create_app
from .config import ClientConfig, Mode, ServerConfig
from .server import HTTPServer

__all__ = [
    "Application",
    "ClientConfig",
    "HTTPServer",
    "Mode",
    "ServerConfig",
    "create_app",
    "__version__",
]
