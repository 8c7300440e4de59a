"""
Unit tests for URL router.
"""

from splitstack.http.request import HTTPRequest, RequestParser
from splitstack.http.response import HTTPResponse, ResponseBuilder
from splitstack.http.router import Router


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    return ResponseBuilder().json({"path": request.path}).build()


class TestRouter:
    """Tests for Router class."""

    def test_add_route(self):
        """Routes record path and upper-cased method."""
        router = Router()
        route = router.add_route("/data", dummy_handler, method="get")

        assert route.path == "/data"
        assert route.method == "GET"
        assert router.routes() == [route]

    def test_match_static_path(self):
        """Exact paths match their own route only."""
        router = Router()
        router.add_route("/data", dummy_handler, method="GET")
        router.add_route("/health", dummy_handler, method="GET")

        match = router.match("GET", "/health")

        assert match is not None
        assert match.route.path == "/health"
        assert match.params == {}

    def test_matches_canonical_path_only(self):
        """The router does no path cleanup of its own; the parser does."""
        router = Router()
        router.add_route("/data", dummy_handler, method="GET")

        assert router.match("GET", "/data/") is None
        assert router.match("GET", "//data") is None
        assert router.match("GET", RequestParser.canonical_path("//data/")) is not None

    def test_root_path(self):
        """'/' only matches '/'."""
        router = Router()
        router.add_route("/", dummy_handler, method="GET")

        assert router.match("GET", "/") is not None
        assert router.match("GET", "/other") is None

    def test_method_mismatch_is_no_match(self):
        """Wrong method falls through like an unknown path."""
        router = Router()
        router.add_route("/data", dummy_handler, method="GET")

        assert router.match("DELETE", "/data") is None

    def test_head_uses_get_route(self):
        """HEAD is answered by the GET route."""
        router = Router()
        router.add_route("/data", dummy_handler, method="GET")

        assert router.match("HEAD", "/data") is not None

    def test_any_method_route(self):
        """method=None matches every method."""
        router = Router()
        router.add_route("/echo", dummy_handler)

        assert router.match("PATCH", "/echo") is not None

    def test_match_dynamic_params(self):
        """':name' captures one segment."""
        router = Router()
        router.add_route("/data/:id/tags/:tag", dummy_handler, method="GET")

        match = router.match("GET", "/data/7/tags/red")

        assert match.params == {"id": "7", "tag": "red"}
        assert router.match("GET", "/data/7") is None

    def test_match_wildcard(self):
        """'*name' captures the rest of the path."""
        router = Router()
        router.add_route("/assets/*file", dummy_handler, method="GET")

        match = router.match("GET", "/assets/js/app.js")

        assert match.params == {"file": "js/app.js"}

    def test_first_registered_wins(self):
        """Earlier routes shadow later ones."""
        router = Router()
        first = router.add_route("/data/:id", dummy_handler, method="GET")
        router.add_route("/data/latest", dummy_handler, method="GET")

        assert router.match("GET", "/data/latest").route is first


class TestRouterDecorators:
    """Tests for decorator registration."""

    def test_get_and_post_decorators(self):
        """Decorators register and return the handler unchanged."""
        router = Router()

        @router.get("/items")
        def list_items(request):
            return dummy_handler(request)

        @router.post("/items")
        def create_item(request):
            return dummy_handler(request)

        assert router.match("GET", "/items").route.handler is list_items
        assert router.match("POST", "/items").route.handler is create_item

    def test_named_route(self):
        """Names are stored for url_for()."""
        router = Router()
        router.get("/health", name="health")(dummy_handler)

        assert router.routes()[0].name == "health"


class TestRouterGroups:
    """Tests for prefix groups."""

    def test_group_prefix(self):
        """Group routes live under the prefix."""
        router = Router()
        api = router.group("/api")
        api.get("/health")(dummy_handler)

        assert router.match("GET", "/api/health") is not None
        assert router.match("GET", "/health") is None

    def test_nested_groups(self):
        """Prefixes compose."""
        router = Router()
        router.group("/api").group("/v1").get("/data")(dummy_handler)

        assert router.match("GET", "/api/v1/data") is not None


class TestRouterURLGeneration:
    """Tests for reverse routing."""

    def test_url_for_with_params(self):
        """Parameters are substituted."""
        router = Router()
        router.group("/api").get("/data/:id", name="item")(dummy_handler)

        assert router.url_for("item", id="7") == "/api/data/7"

    def test_url_for_unknown(self):
        """Unknown names give None."""
        assert Router().url_for("missing") is None
