"""
=============================================================================
CLIENT BUNDLE HANDLER (PRODUCTION ONLY)
=============================================================================

In production the pre-built client bundle is served by this same server,
so the client and the API share one origin:

    GET /                      → client/dist/index.html
    GET /assets/app.3f9c.js    → client/dist/assets/app.3f9c.js
    GET /dashboard/settings    → client/dist/index.html   (client-side route)
    GET /api/unknown           → not answered here → 404 "Route not found"

It is a routing branch, not a pipeline stage. RouteDispatchStage calls it
only after no API route matched. Returning None declines, and the request
falls through to the not-found stage.

=============================================================================
CACHING
=============================================================================

Bundlers fingerprint asset filenames, so assets can be cached for a long
time. index.html must always be revalidated, or clients keep loading old
asset names after a deploy. Both carry an ETag; a matching If-None-Match
gets 304 Not Modified with no body.

=============================================================================
SECURITY
=============================================================================

Every resolved path must stay inside the bundle root. Resolution follows
symlinks, so a link pointing outside the root is refused as well.
=============================================================================
"""

from datetime import datetime, timezone
from http import HTTPStatus
from pathlib import Path
from typing import Optional
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, format_http_date


logger = logging.getLogger(__name__)


class ClientBundleHandler:
    """
    Serves a single-page-app bundle with an entry-document fallback.

        bundle = ClientBundleHandler("client/dist", api_prefix="/api")
        RouteDispatchStage(router, fallback=bundle)
    """

    def __init__(
        self,
        root_dir: str,
        api_prefix: str = "/api",
        index_file: str = "index.html",
        cache_max_age: int = 31536000,
    ):
        self.root_dir = Path(root_dir).resolve()
        self.api_prefix = api_prefix.rstrip("/")
        self.index_file = index_file
        self.cache_max_age = cache_max_age

        if not self.root_dir.is_dir():
            raise ValueError(f"Client bundle directory does not exist: {root_dir}")
        if not (self.root_dir / index_file).is_file():
            logger.warning(f"No {index_file} in {self.root_dir}; client routes will 404")

    def __call__(self, request: HTTPRequest) -> Optional[HTTPResponse]:
        return self.handle(request)

    def handle(self, request: HTTPRequest) -> Optional[HTTPResponse]:
        if request.method not in ("GET", "HEAD") or self._is_api_path(request.path):
            return None

        relative = request.path.lstrip("/")
        if relative:
            candidate = self._resolve(relative)
            if candidate is not None and candidate.is_file():
                return self._serve(candidate, request, immutable=True)

        index = self.root_dir / self.index_file
        if not index.is_file():
            return None
        return self._serve(index, request, immutable=False)

    def _is_api_path(self, path: str) -> bool:
        if not self.api_prefix:
            return False
        return path == self.api_prefix or path.startswith(self.api_prefix + "/")

    def _resolve(self, relative: str) -> Optional[Path]:
        full_path = (self.root_dir / relative).resolve()
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {relative}")
            return None
        return full_path

    def _serve(self, path: Path, request: HTTPRequest, immutable: bool) -> HTTPResponse:
        stat = path.stat()
        etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'
        cache_control = (
            f"public, max-age={self.cache_max_age}, immutable" if immutable else "no-cache"
        )

        if request.headers.get("if-none-match") == etag:
            return (ResponseBuilder()
                .status(HTTPStatus.NOT_MODIFIED)
                .header("ETag", etag)
                .header("Cache-Control", cache_control)
                .build())

        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return (ResponseBuilder()
            .file(path.read_bytes(), path.name)
            .header("ETag", etag)
            .header("Last-Modified", format_http_date(modified))
            .header("Cache-Control", cache_control)
            .build())
