import pytest

pytest.importorskip("fastapi")

import app.main as m


def _iter_http_routes():
    for route in m.app.routes:
        path = getattr(route, "path", None)
        methods = getattr(route, "methods", None)
        if not path or not methods:
            continue
        for method in sorted(methods):
            if method in {"HEAD", "OPTIONS"}:
                continue
            yield method, path


def test_no_duplicate_http_method_path_pairs():
    seen: set[tuple[str, str]] = set()
    duplicates: list[tuple[str, str]] = []
    for pair in _iter_http_routes():
        if pair in seen:
            duplicates.append(pair)
        seen.add(pair)
    assert duplicates == []


def test_core_routes_are_registered():
    routes = set(_iter_http_routes())
    for pair in [
        ("POST", "/matches"),
        ("GET", "/matches"),
        ("POST", "/matches/{match_id}/seen"),
        ("DELETE", "/matches/{match_id}"),
        ("GET", "/conversations"),
        ("POST", "/messages/send"),
        ("GET", "/messages/unread"),
        ("GET", "/messages/{match_id}"),
        ("POST", "/typing"),
        ("POST", "/read-receipt"),
        ("POST", "/users/me/activity"),
        ("GET", "/health"),
    ]:
        assert pair in routes, pair


def test_unread_route_is_matched_before_match_id_route():
    paths = [path for _, path in _iter_http_routes()]
    assert paths.index("/messages/unread") < paths.index("/messages/{match_id}")


def test_scaffold_namespace_contains_only_health_routes():
    scaffold_routes = [(method, path) for method, path in _iter_http_routes() if path.startswith("/_scaffold/")]
    assert scaffold_routes
    for method, path in scaffold_routes:
        assert method == "GET"
        assert path.endswith("/health")
