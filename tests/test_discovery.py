"""Tests for locale and page providers."""

import asyncio
import json

import httpx
import pytest

from edgemap.aggregate import aggregate
from edgemap.discovery import (
    CatalogPageSource,
    CmsLocaleSource,
    CmsPageSource,
    flatten_tree,
    get_locale_source,
    get_page_source,
)
from edgemap.exceptions import ConfigurationError, ProviderError, RetryExhaustedError
from edgemap.models import Filter, FilterRules

BASE = "https://www.example.com"
LOCALES = [{"code": "en", "default": True}, {"code": "no"}, {"code": "fi"}]
TREE = [
    {"id": "1", "path": "", "categories": []},
    {
        "id": "2",
        "path": "games/all",
        "categories": ["lobby"],
        "children": [
            {"id": "3", "path": "games/all/slots", "categories": ["slots"]},
            {"id": "4", "path": "games/live", "categories": ["live"]},
        ],
    },
    {"id": "5", "path": "promotions", "categories": []},
]


def details(blocks: dict | None = None) -> dict:
    return {"id": "x", "blocks": blocks or {}}


class TestRegistry:
    """Tests for provider selection by type tag."""

    def test_unknown_locale_type(self, fetcher_factory, fake_site):
        with pytest.raises(ConfigurationError, match="Unsupported locales API type"):
            get_locale_source("wordpress", BASE, fetcher_factory(fake_site))

    def test_unknown_page_type(self, fetcher_factory, fake_site):
        with pytest.raises(ConfigurationError, match="Unsupported pages API type"):
            get_page_source("wordpress", BASE, fetcher_factory(fake_site))

    def test_known_types(self, fetcher_factory, fake_site):
        fetcher = fetcher_factory(fake_site)
        assert isinstance(get_locale_source("cms", BASE, fetcher), CmsLocaleSource)
        assert isinstance(get_page_source("cms", BASE, fetcher), CmsPageSource)
        assert isinstance(get_page_source("catalog", BASE, fetcher), CatalogPageSource)


class TestFlattenTree:
    """Tests for depth-first tree flattening."""

    def test_preorder(self):
        assert flatten_tree(TREE, Filter()) == ["", "games/all", "games/all/slots", "games/live", "promotions"]

    def test_children_of_filtered_node_are_visited(self):
        """Excluding a parent does not exclude its children."""
        filter_ = Filter(exclude=FilterRules(ids=["2"]))
        assert flatten_tree(TREE, filter_) == ["", "games/all/slots", "games/live", "promotions"]

    def test_deep_tree(self):
        """Deep trees do not hit the recursion limit."""
        node: dict = {"id": "leaf", "path": "deep/leaf"}
        for i in range(5000):
            node = {"id": str(i), "path": f"deep/{i}", "children": [node]}
        paths = flatten_tree([node], Filter())
        assert len(paths) == 5001
        assert paths[-1] == "deep/leaf"

    def test_node_without_path(self):
        with pytest.raises(ProviderError):
            flatten_tree([{"id": "1"}], Filter())


class TestCmsLocaleSource:
    """Tests for the CMS locale listing."""

    @pytest.mark.asyncio
    async def test_filters_locales(self, fetcher_factory, fake_site):
        fake_site.routes["/api/locales"] = LOCALES
        async with fetcher_factory(fake_site) as fetcher:
            source = CmsLocaleSource(f"{BASE}/api/locales", fetcher)
            locales = await source.get_locales(Filter(exclude=FilterRules(locales=["no"])))
        assert locales == ["en", "fi"]

    @pytest.mark.asyncio
    async def test_retries_until_success(self, fetcher_factory, fake_site):
        attempts = {"n": 0}

        def flaky(request: httpx.Request) -> httpx.Response:
            attempts["n"] += 1
            if attempts["n"] < 5:
                return httpx.Response(403)
            return httpx.Response(200, json=LOCALES)

        fake_site.routes["/api/locales"] = flaky
        async with fetcher_factory(fake_site) as fetcher:
            locales = await CmsLocaleSource(f"{BASE}/api/locales", fetcher).get_locales(Filter())
        assert locales == ["en", "no", "fi"]
        assert attempts["n"] == 5

    @pytest.mark.asyncio
    async def test_gives_up_after_ceiling(self, fetcher_factory, fake_site):
        fake_site.routes["/api/locales"] = lambda request: httpx.Response(403, text="forbidden")
        async with fetcher_factory(fake_site) as fetcher:
            with pytest.raises(RetryExhaustedError) as exc_info:
                await CmsLocaleSource(f"{BASE}/api/locales", fetcher).get_locales(Filter())
        assert len(fake_site.calls) == 6
        assert isinstance(exc_info.value.__cause__, ProviderError)
        assert exc_info.value.__cause__.status_code == 403


class TestCmsPageSource:
    """Tests for the CMS page tree with per-locale detail checks."""

    @pytest.fixture
    def site(self, fake_site):
        fake_site.routes["/api/pages"] = TREE
        for path in ("games/all", "games/all/slots", "games/live", "promotions"):
            fake_site.routes[f"/api/pages/{path}"] = details()
        return fake_site

    @pytest.mark.asyncio
    async def test_root_needs_no_details(self, fetcher_factory, site):
        async with fetcher_factory(site) as fetcher:
            source = CmsPageSource(f"{BASE}/api/pages", fetcher)
            paths = await source.paths_by_locale(["en"], [""])
        assert paths == {"en": [""]}
        assert site.calls == []

    @pytest.mark.asyncio
    async def test_detail_request_shape(self, fetcher_factory, site):
        async with fetcher_factory(site) as fetcher:
            await CmsPageSource(f"{BASE}/api/pages", fetcher).paths_by_locale(["no"], ["promotions"])
        request = site.calls[0]
        assert request.url.path == "/api/pages/promotions"
        assert request.url.params["locale"] == "no"
        assert request.headers["accept-language"] == "no"

    @pytest.mark.asyncio
    async def test_hidden_and_missing_pages_dropped_per_locale(self, fetcher_factory, site):
        def per_locale(hidden_in: str, flag: str):
            def handler(request: httpx.Request) -> httpx.Response:
                if request.url.params["locale"] == hidden_in:
                    return httpx.Response(200, json=details({flag: "1"}))
                return httpx.Response(200, json=details())

            return handler

        site.routes["/api/pages/promotions"] = per_locale("no", "noindex")
        site.routes["/api/pages/games/live"] = per_locale("en", "invisible_route")
        site.routes["/api/pages/games/all/slots"] = (
            lambda request: httpx.Response(404)
            if request.url.params["locale"] == "fi"
            else httpx.Response(200, json=details())
        )

        async with fetcher_factory(site) as fetcher:
            source = CmsPageSource(f"{BASE}/api/pages", fetcher)
            candidates = await source.list_candidates(Filter(exclude=FilterRules(ids=["2"])))
            paths = await source.paths_by_locale(["en", "no", "fi"], candidates)

        assert paths == {
            "en": ["", "games/all/slots", "promotions"],
            "no": ["", "games/all/slots", "games/live"],
            "fi": ["", "games/live", "promotions"],
        }

    @pytest.mark.asyncio
    async def test_detail_failure_stops_other_lookups(self, fetcher_factory, site):
        """A fatal detail lookup leaves no request running after the fetcher closes."""
        completed: list[str] = []

        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.2)
            completed.append(request.url.path)
            return httpx.Response(200, json=details())

        site.routes["/api/pages/bad"] = lambda request: httpx.Response(403)
        site.routes["/api/pages/slow"] = slow
        async with fetcher_factory(site) as fetcher:
            source = CmsPageSource(f"{BASE}/api/pages", fetcher)
            with pytest.raises(RetryExhaustedError, match="bad"):
                await source.paths_by_locale(["en"], ["slow", "bad"])

        assert [t for t in asyncio.all_tasks() if t is not asyncio.current_task()] == []
        await asyncio.sleep(0.3)
        assert completed == []

    @pytest.mark.asyncio
    async def test_detail_failure_is_fatal_after_retries(self, fetcher_factory, site):
        site.routes["/api/pages/promotions"] = lambda request: httpx.Response(400, text="bad")
        async with fetcher_factory(site) as fetcher:
            source = CmsPageSource(f"{BASE}/api/pages", fetcher)
            with pytest.raises(RetryExhaustedError, match="promotions"):
                await source.paths_by_locale(["en"], ["promotions"])
        assert len(site.calls) == 4

    @pytest.mark.asyncio
    async def test_exclude_pattern_end_to_end(self, fetcher_factory, site):
        """Paths matching the exclude pattern disappear in every locale."""
        site.routes["/api/pages"] = [
            {"id": "1", "path": ""},
            {"id": "2", "path": "games/all", "children": [{"id": "3", "path": "games/all/slots"}]},
            {"id": "4", "path": "games/slots"},
        ]
        site.routes["/api/pages/games/slots"] = details()
        site.routes["/api/locales"] = [{"code": "en"}, {"code": "no"}]
        filter_ = Filter(exclude=FilterRules(urls=["games/all"]))

        async with fetcher_factory(site) as fetcher:
            locales = await CmsLocaleSource(f"{BASE}/api/locales", fetcher).get_locales(filter_)
            paths = await CmsPageSource(f"{BASE}/api/pages", fetcher).get_pages(locales, filter_)
        pages = aggregate(paths)

        assert {(p.lang, p.path) for p in pages} == {("en", ""), ("no", ""), ("en", "games/slots"), ("no", "games/slots")}
        root = next(p for p in pages if p.lang == "en" and p.path == "")
        assert (root.priority, root.changefreq) == (1.0, "always")
        slots = next(p for p in pages if p.path == "games/slots")
        assert (slots.priority, slots.changefreq) == (0.8, "daily")


class TestCatalogPageSource:
    """Tests for the paginated catalog."""

    ITEMS = [
        {"identifier": "acme:book", "seo_title": "book-of-gold", "provider": "acme", "categories": ["slots"]},
        {"identifier": "acme:roulette", "seo_title": "roulette", "provider": "acme", "categories": ["live"]},
        {"identifier": "nova:stars", "seo_title": "stars", "provider": "nova", "categories": ["slots"]},
    ]

    @pytest.fixture
    def site(self, fake_site):
        def catalog(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            page = body["page"]
            next_page = page + 1 if page < 3 else None
            return httpx.Response(
                200,
                json={"data": [self.ITEMS[page - 1]], "pagination": {"current_page": page, "next_page": next_page}},
            )

        fake_site.routes["/api/games"] = catalog
        return fake_site

    @pytest.mark.asyncio
    async def test_follows_pagination(self, fetcher_factory, site):
        async with fetcher_factory(site) as fetcher:
            paths = await CatalogPageSource(f"{BASE}/api/games", fetcher).get_pages(["en", "no"], Filter())
        assert paths == {
            "en": ["games/book-of-gold", "games/roulette", "games/stars"],
            "no": ["games/book-of-gold", "games/roulette", "games/stars"],
        }
        assert [json.loads(r.content)["page"] for r in site.calls] == [1, 2, 3]
        assert all(r.method == "POST" for r in site.calls)

    @pytest.mark.asyncio
    async def test_filter_by_provider_and_category(self, fetcher_factory, site):
        filter_ = Filter(exclude=FilterRules(providers=["nova"], categories=["live"]))
        async with fetcher_factory(site) as fetcher:
            candidates = await CatalogPageSource(f"{BASE}/api/games", fetcher).list_candidates(filter_)
        assert candidates == ["games/book-of-gold"]

    @pytest.mark.asyncio
    async def test_include_by_url_pattern(self, fetcher_factory, site):
        filter_ = Filter(include=FilterRules(urls=["^book"]))
        async with fetcher_factory(site) as fetcher:
            candidates = await CatalogPageSource(f"{BASE}/api/games", fetcher).list_candidates(filter_)
        assert candidates == ["games/book-of-gold"]

    @pytest.mark.asyncio
    async def test_catalog_pages_share_catalog_policy(self, fetcher_factory, site):
        async with fetcher_factory(site) as fetcher:
            paths = await CatalogPageSource(f"{BASE}/api/games", fetcher).get_pages(["en"], Filter())
        assert {(p.priority, p.changefreq) for p in aggregate(paths)} == {(0.8, "daily")}

    @pytest.mark.asyncio
    async def test_page_failure_retried_then_fatal(self, fetcher_factory, fake_site):
        fake_site.routes["/api/games"] = lambda request: httpx.Response(401)
        async with fetcher_factory(fake_site) as fetcher:
            with pytest.raises(RetryExhaustedError, match="catalog page 1"):
                await CatalogPageSource(f"{BASE}/api/games", fetcher).list_candidates(Filter())
        assert len(fake_site.calls) == 4
