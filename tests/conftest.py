"""Pytest configuration and shared fixtures for edgemap tests."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeAlias

import httpx
import pytest

from edgemap.transport import Fetcher

Handler: TypeAlias = Callable[[httpx.Request], httpx.Response]


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Pure logic tests with no I/O or network")
    config.addinivalue_line("markers", "integration: Tests wiring several components over a stubbed network")
    config.addinivalue_line("markers", "e2e: End-to-end tests against live listing APIs")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """
    Apply default markers to tests without explicit markers.

    Unmarked tests default to unit.
    """
    for item in items:
        marker_names = [m.name for m in item.iter_markers()]
        if any(m in marker_names for m in ("unit", "integration", "e2e")):
            continue
        item.add_marker(pytest.mark.unit)


def make_fetcher(handler: Handler, max_retries: int = 0) -> Fetcher:
    """Fetcher backed by an in-memory transport, without backoff delays."""
    return Fetcher(transport=httpx.MockTransport(handler), max_retries=max_retries, min_delay=0.0)


class FakeSite:
    """In-memory CMS + catalog API keyed by URL path.

    Routes map a path to a JSON payload or to a callable returning a response.
    Every request is recorded in ``calls``.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = routes or {}
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.calls]


@pytest.fixture
def fake_site() -> FakeSite:
    """Empty fake site; tests add routes."""
    return FakeSite()


@pytest.fixture
def config_data() -> dict[str, Any]:
    """A two-worker configuration exercising every override level."""
    return {
        "base_url": "https://www.example-a.com",
        "filter": {"exclude": {"locales": ["no"]}},
        "proxy": {"url": "http://proxy.example.com:3128", "username": "u", "password": "p"},
        "modules": [
            {
                "name": "main",
                "locales_api": {"type": "cms", "url": "/api/locales"},
                "pages_api": {"type": "cms", "url": "/api/pages"},
                "filter": {"exclude": {"urls": ["games/all"]}},
            },
            {
                "name": "games",
                "locales_api": {"type": "cms", "url": "/api/locales"},
                "pages_api": {"type": "catalog", "url": "https://catalog.example.com/api/games"},
            },
        ],
        "workers": [
            {"name": "sitemap-a", "account_id": "acc-a", "auth": {"token": "tok-a"}},
            {
                "name": "sitemap-b",
                "account_id": "acc-b",
                "auth": {"email": "ops@example.com", "key": "key-b"},
                "deployment": "bindings",
                "config": {
                    "base_url": "https://www.example-b.com/",
                    "replace": [{"pattern": "/en-AU", "value": ""}],
                    "locale_base_urls": {"de": "https://de.example-b.com"},
                },
            },
        ],
    }


@pytest.fixture
def config_file(tmp_path: Path, config_data: dict[str, Any]) -> Path:
    """Write the configuration to a temporary file.

    Args:
        tmp_path: Pytest temporary directory.
        config_data: Configuration document.

    Returns:
        Path to the created configuration file.
    """
    path = tmp_path / "edgemap.json"
    path.write_text(json.dumps(config_data), encoding="utf-8")
    return path


@pytest.fixture
def fetcher_factory() -> Callable[..., Fetcher]:
    """Factory building a stubbed fetcher from a request handler."""
    return make_fetcher


@pytest.fixture
def site(fake_site: FakeSite) -> FakeSite:
    """Fake CMS, catalog and upload API sharing one transport.

    Serves three locales, a page tree with one excluded branch, a one-page
    catalog and successful uploads for every unit of both workers.
    """
    fake_site.routes.update(
        {
            "/api/locales": [{"code": "en"}, {"code": "no"}, {"code": "de"}],
            "/api/pages": [
                {"id": "1", "path": ""},
                {"id": "2", "path": "games/all", "children": [{"id": "3", "path": "promotions"}]},
            ],
            "/api/pages/promotions": {"id": "3", "blocks": {}},
            "/api/games": {
                "data": [
                    {"identifier": "acme:book", "seo_title": "book-of-gold", "provider": "acme"},
                    {"identifier": "acme:stars", "seo_title": "stars", "provider": "acme"},
                ],
                "pagination": {"current_page": 1, "next_page": None},
            },
        }
    )
    for account, worker in (("acc-a", "sitemap-a"), ("acc-b", "sitemap-b")):
        for unit in (1, 2, 3):
            path = f"/client/v4/accounts/{account}/workers/scripts/{worker}-{unit}"
            fake_site.routes[path] = {"success": True, "errors": [], "result": {}}
    return fake_site
