"""Tree-structured CMS provider (tag ``cms``).

The CMS exposes three JSON endpoints:

- the locale listing: ``[{"code": "en", "name": ..., "default": true}, ...]``
- the page tree: ``[{"id", "path", "categories", "children": [...]}, ...]``
- page details: ``<pages_url>/<path>?locale=<code>``, answering 404 when the
  page does not exist in that locale and carrying visibility ``blocks``.
"""

import logging
from collections.abc import Sequence
from typing import Any

from edgemap.discovery.base import (
    LocaleSource,
    PageSource,
    decode_json,
    register_locale_source,
    register_page_source,
)
from edgemap.exceptions import ProviderError
from edgemap.filters import Candidate, filter_locales, is_kept
from edgemap.models import Filter, Locale
from edgemap.utils import gather_or_cancel, log_with_correlation, retry_async

LOGGER = logging.getLogger(__name__)

TYPE_TAG = "cms"

# Domain-level retry ceilings
LOCALES_RETRIES = 5
TREE_RETRIES = 5
DETAIL_RETRIES = 3

CMS_HEADERS = {
    "content-type": "application/json",
    "accept": "application/vnd.softswiss.v1+json",
}

# Detail blocks that hide a page from search engines
HIDDEN_BLOCK_FLAGS = ("noindex", "invisible_route")


@register_locale_source
class CmsLocaleSource(LocaleSource):
    """Locale listing of the CMS."""

    type_tag = TYPE_TAG

    async def _fetch(self) -> list[dict[str, Any]]:
        response = await self.fetcher.request("GET", self.url, headers=CMS_HEADERS)
        data = decode_json(response, TYPE_TAG, "Locales API")
        if not isinstance(data, list):
            raise ProviderError("Locales API did not return a list", provider=TYPE_TAG)
        return data

    async def get_locales(self, filter_: Filter) -> list[Locale]:
        """
        Fetch the locale listing and apply the filter's locale rules.

        Args:
            filter_: Module filter.

        Returns:
            Locale codes in listing order.

        Raises:
            RetryExhaustedError: If the listing could not be fetched.
            ProviderError: If an entry carries no locale code.
        """
        raw = await retry_async(self._fetch, LOCALES_RETRIES, f"Fetching locales from {self.url}", self.correlation_id)
        codes: list[Locale] = []
        for entry in raw:
            code = entry.get("code") if isinstance(entry, dict) else None
            if not isinstance(code, str):
                raise ProviderError(f"Locale entry without a code: {entry!r}", provider=TYPE_TAG)
            codes.append(code)
        return filter_locales(filter_, codes)


def _node_candidate(node: dict[str, Any]) -> Candidate:
    return Candidate(
        id=str(node["id"]) if node.get("id") is not None else None,
        url=node["path"],
        categories=tuple(node.get("categories") or ()),
    )


def flatten_tree(nodes: Sequence[dict[str, Any]], filter_: Filter) -> list[str]:
    """
    Collect the paths of every node that passes the filter, depth first.

    Every node is tested independently; a filtered-out node's children are
    still visited. The walk uses an explicit stack, so tree depth is not
    bounded by the interpreter's recursion limit.

    Args:
        nodes: Top-level nodes of the page tree.
        filter_: Module filter.

    Returns:
        Paths in pre-order, duplicates removed.

    Raises:
        ProviderError: If a node has no string ``path``.
    """
    paths: dict[str, None] = {}
    stack: list[Any] = list(reversed(nodes))
    while stack:
        node = stack.pop()
        if not isinstance(node, dict) or not isinstance(node.get("path"), str):
            raise ProviderError(f"Page node without a path: {node!r}", provider=TYPE_TAG)
        if is_kept(filter_, _node_candidate(node)):
            paths.setdefault(node["path"], None)
        children = node.get("children") or []
        stack.extend(reversed(children))
    return list(paths)


def is_visible(details: dict[str, Any] | None) -> bool:
    """Whether page details allow the page to be indexed."""
    if details is None:
        return False
    blocks = details.get("blocks") or {}
    return not any(blocks.get(flag) for flag in HIDDEN_BLOCK_FLAGS)


@register_page_source
class CmsPageSource(PageSource):
    """Page tree of the CMS, re-verified per locale through page details."""

    type_tag = TYPE_TAG

    async def _fetch_tree(self) -> list[dict[str, Any]]:
        response = await self.fetcher.request("GET", self.url, headers=CMS_HEADERS)
        data = decode_json(response, TYPE_TAG, "Pages API")
        if not isinstance(data, list):
            raise ProviderError("Pages API did not return a list", provider=TYPE_TAG)
        return data

    async def _fetch_details(self, path: str, locale: Locale) -> dict[str, Any] | None:
        url = f"{self.url.rstrip('/')}/{path.lstrip('/')}"
        response = await self.fetcher.request(
            "GET",
            url,
            params={"locale": locale},
            headers={**CMS_HEADERS, "locale_override": "forbidden", "accept-language": locale},
        )
        if response.status_code == 404:
            return None
        data = decode_json(response, TYPE_TAG, f"Page details for '{path}' ({locale})")
        if not isinstance(data, dict):
            raise ProviderError(f"Page details for '{path}' ({locale}) is not an object", provider=TYPE_TAG)
        return data

    async def _check(self, path: str, locale: Locale) -> bool:
        # The site root has no details endpoint and is always indexable
        if path.strip("/") == "":
            return True
        details = await retry_async(
            lambda: self._fetch_details(path, locale),
            DETAIL_RETRIES,
            f"Fetching page details for '{path}' ({locale})",
            self.correlation_id,
        )
        visible = is_visible(details)
        LOGGER.debug(f"Page '{path}' in {locale}: {'visible' if visible else 'hidden'}")
        return visible

    async def list_candidates(self, filter_: Filter) -> list[str]:
        tree = await retry_async(self._fetch_tree, TREE_RETRIES, f"Fetching pages from {self.url}", self.correlation_id)
        candidates = flatten_tree(tree, filter_)
        log_with_correlation(
            LOGGER,
            logging.INFO,
            f"Found {len(candidates)} candidate pages in {self.url}",
            correlation_id=self.correlation_id,
        )
        return candidates

    async def paths_by_locale(self, locales: Sequence[Locale], candidates: Sequence[str]) -> dict[Locale, list[str]]:
        """
        Check every (locale, path) pair concurrently and keep the visible ones.

        A 404 or a hidden flag drops the path for that locale only.
        """
        pairs = [(locale, path) for locale in locales for path in candidates]
        results = await gather_or_cancel(*(self._check(path, locale) for locale, path in pairs))

        paths: dict[Locale, list[str]] = {locale: [] for locale in locales}
        for (locale, path), visible in zip(pairs, results, strict=True):
            if visible:
                paths[locale].append(path)
        return paths
