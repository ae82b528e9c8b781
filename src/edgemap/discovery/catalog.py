"""Paginated item catalog provider (tag ``catalog``).

The catalog answers a POST with one numbered page of items::

    {"data": [{"identifier", "seo_title", "provider", "categories"}, ...],
     "pagination": {"current_page": 1, "next_page": 2, "total_pages": 9}}

Every item is exposed identically in all active locales.
"""

import logging
from collections.abc import Sequence
from typing import Any

from edgemap.aggregate import CATALOG_SEGMENT
from edgemap.discovery.base import PageSource, decode_json, register_page_source
from edgemap.exceptions import ProviderError
from edgemap.filters import Candidate, apply_filter
from edgemap.models import Filter, Locale
from edgemap.utils import log_with_correlation, retry_async

LOGGER = logging.getLogger(__name__)

TYPE_TAG = "catalog"

PAGE_RETRIES = 3
PAGE_SIZE = 100

# Guard against a listing whose next_page never ends
MAX_PAGES = 10_000

CATALOG_HEADERS = {
    "content-type": "application/json",
    "accept": "application/vnd.s.v2+json",
    "pragma": "no-cache",
}


def _item_candidate(item: dict[str, Any]) -> Candidate:
    return Candidate(
        id=item.get("identifier"),
        url=item["seo_title"],
        categories=tuple(item.get("categories") or ()),
        provider=item.get("provider") or "",
    )


def item_path(item: dict[str, Any]) -> str:
    """Site path of a catalog item."""
    return f"{CATALOG_SEGMENT}/{item['seo_title']}"


@register_page_source
class CatalogPageSource(PageSource):
    """Catalog items fetched page by page until ``next_page`` is null."""

    type_tag = TYPE_TAG

    async def _fetch_page(self, page: int) -> dict[str, Any]:
        response = await self.fetcher.request(
            "POST",
            self.url,
            headers=CATALOG_HEADERS,
            json={
                "device": "desktop",
                "page": page,
                "page_size": PAGE_SIZE,
                "without_territorial_restrictions": True,
                "sort": {"direction": "ASC", "type": "global"},
            },
        )
        data = decode_json(response, TYPE_TAG, f"Catalog API (page {page})")
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise ProviderError(f"Catalog API page {page} has no 'data' list", provider=TYPE_TAG)
        return data

    async def fetch_items(self) -> list[dict[str, Any]]:
        """
        Fetch every catalog page.

        Returns:
            Raw items in listing order.

        Raises:
            RetryExhaustedError: If a page could not be fetched.
            ProviderError: If the listing does not terminate.
        """
        items: list[dict[str, Any]] = []
        page: int | None = 1
        fetched = 0
        while page is not None:
            if fetched >= MAX_PAGES:
                raise ProviderError(f"Catalog pagination exceeded {MAX_PAGES} pages", provider=TYPE_TAG)
            LOGGER.debug(f"Fetching catalog page {page}")
            current = page
            data = await retry_async(
                lambda: self._fetch_page(current),
                PAGE_RETRIES,
                f"Fetching catalog page {current} from {self.url}",
                self.correlation_id,
            )
            items.extend(data["data"])
            fetched += 1
            page = (data.get("pagination") or {}).get("next_page")
        return items

    async def list_candidates(self, filter_: Filter) -> list[str]:
        items = [item for item in await self.fetch_items() if isinstance(item, dict) and item.get("seo_title")]
        kept = apply_filter(filter_, items, _item_candidate)
        log_with_correlation(
            LOGGER,
            logging.INFO,
            f"Catalog listed {len(items)} items, {len(kept)} kept",
            correlation_id=self.correlation_id,
        )
        return list(dict.fromkeys(item_path(item) for item in kept))

    async def paths_by_locale(self, locales: Sequence[Locale], candidates: Sequence[str]) -> dict[Locale, list[str]]:
        return {locale: list(candidates) for locale in locales}
