"""Tests for endpoint discovery."""

from pathlib import Path

from routelens.scanner import (
    controller_name_for,
    list_route_files,
    scan_route_text,
    scan_routes,
    scan_routes_directory,
    scan_routes_file,
)


class TestScanRouteText:
    """Test the route-call matcher."""

    def test_single_route(self):
        endpoints = scan_route_text('router.get("/users/:id", getUser)')

        assert len(endpoints) == 1
        assert endpoints[0].method == "GET"
        assert endpoints[0].path == "/users/:id"
        assert endpoints[0].handler == "getUser"

    def test_all_quote_styles(self):
        text = "router.post('/a', a);\nrouter.put(\"/b\", b);\nrouter.patch(`/c`, c);"
        endpoints = scan_route_text(text)

        assert [(e.method, e.path, e.handler) for e in endpoints] == [
            ("POST", "/a", "a"),
            ("PUT", "/b", "b"),
            ("PATCH", "/c", "c"),
        ]

    def test_options_and_head(self):
        endpoints = scan_route_text('router.options("/x", opts); router.head("/x", peek);')
        assert [e.method for e in endpoints] == ["OPTIONS", "HEAD"]

    def test_handler_after_member_middleware_not_matched(self):
        endpoints = scan_route_text('router.get("/secure", auth.required, getSecret)')
        assert endpoints == []

    def test_first_identifier_is_taken(self):
        endpoints = scan_route_text('router.get("/secure", authenticate, getSecret)')
        assert [e.handler for e in endpoints] == ["authenticate"]

    def test_other_receivers_ignored_by_default(self):
        assert scan_route_text('app.get("/health", health)') == []

    def test_custom_router_names(self):
        text = 'app.get("/health", health);\nrouter.get("/x", x);'
        endpoints = scan_route_text(text, router_names=["app", "router"])
        assert [e.handler for e in endpoints] == ["health", "x"]

    def test_duplicates_collapsed(self):
        text = 'router.get("/a", a);\nrouter.get("/a", a);'
        assert len(scan_route_text(text)) == 1

    def test_identifier_format(self):
        endpoint = scan_route_text('router.get("/users/:id", getUser)')[0]
        assert endpoint.identifier == "GET /users/:id → getUser"


def test_controller_name_for():
    assert controller_name_for(Path("user.routes.js")) == "user.controller.js"
    assert controller_name_for(Path("admin.routes.mjs")) == "admin.controller.mjs"
    assert controller_name_for(Path("misc.js")) == "misc.js"


def test_scan_routes_file(sample_project: Path):
    endpoints = scan_routes_file(sample_project / "src" / "routes" / "user.routes.js")

    assert [e.identifier for e in endpoints] == [
        "GET / → getUsers",
        "GET /:id → getUser",
        "POST / → createUser",
        "DELETE /:id → deleteUser",
        "PUT /:id/avatar → uploadAvatar",
    ]
    assert all(e.controller == "user.controller.js" for e in endpoints)
    assert all(e.route_file == "user.routes.js" for e in endpoints)


def test_scan_missing_file_returns_empty(temp_dir: Path, caplog):
    assert scan_routes_file(temp_dir / "nope.routes.js") == []
    assert "not found" in caplog.text


def test_scan_missing_directory_returns_empty(temp_dir: Path):
    assert scan_routes_directory(temp_dir / "missing") == []


def test_scan_directory_sorted_by_file_name(sample_project: Path):
    routes_dir = sample_project / "src" / "routes"
    (routes_dir / "notes.txt").write_text('router.get("/ignored", ignored)')

    endpoints = scan_routes_directory(routes_dir)

    assert endpoints[0].route_file == "post.routes.js"
    assert endpoints[-1].route_file == "user.routes.js"
    assert "ignored" not in {e.handler for e in endpoints}


def test_list_route_files(sample_project: Path):
    assert list_route_files(sample_project / "src" / "routes") == [
        "post.routes.js",
        "user.routes.js",
    ]


def test_scan_routes_accepts_file_or_directory(sample_project: Path):
    routes_dir = sample_project / "src" / "routes"

    from_file = scan_routes(routes_dir / "post.routes.js")
    from_directory = scan_routes(routes_dir)

    assert [e.handler for e in from_file] == ["listPosts"]
    assert from_directory == scan_routes_directory(routes_dir)
