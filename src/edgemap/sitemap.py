"""Sitemap serialisation, partitioning and distribution across worker units.

This module turns aggregated pages into sitemap protocol documents
(``urlset`` with ``xhtml:link`` hreflang alternates), splits large modules
per locale, builds the sitemap index and lays the documents out over a fixed
number of deployable worker units.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from xml.etree import ElementTree

from edgemap.models import Locale, Page, ReplaceRule, Sitemap
from edgemap.utils import apply_replacements, generate_url

LOGGER = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XHTML_NS = "http://www.w3.org/1999/xhtml"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

# A module with at least this many pages is split per locale
PAGINATION_LIMIT = 1000

# Deployable units per worker and sitemaps served by each unit
WORKER_COUNT = 3
PER_WORKER_LIMIT = 40

SITEMAP_INDEX_NAME = "sitemap-index"


def _serialise(root: ElementTree.Element) -> str:
    ElementTree.indent(root, space="  ")
    return XML_DECLARATION + ElementTree.tostring(root, encoding="unicode")


def _base_for(base_url: str, locale: Locale, locale_base_urls: Mapping[Locale, str]) -> str:
    return locale_base_urls.get(locale, base_url)


def render_urlset(
    base_url: str,
    pages: Sequence[Page],
    locale_base_urls: Mapping[Locale, str] | None = None,
) -> str:
    """
    Serialise pages into a ``urlset`` document.

    Args:
        base_url: Module base URL.
        pages: Pages in output order.
        locale_base_urls: Optional per-locale base URL overrides.

    Returns:
        Pretty-printed XML with two-space indentation.
    """
    overrides = locale_base_urls or {}
    root = ElementTree.Element("urlset", {"xmlns": SITEMAP_NS, "xmlns:xhtml": XHTML_NS})
    for page in pages:
        url = ElementTree.SubElement(root, "url")
        ElementTree.SubElement(url, "loc").text = generate_url(
            _base_for(base_url, page.lang, overrides), page.path, page.lang
        )
        ElementTree.SubElement(url, "priority").text = f"{page.priority:.1f}"
        ElementTree.SubElement(url, "changefreq").text = page.changefreq
        for alt in page.alternates:
            ElementTree.SubElement(
                url,
                "xhtml:link",
                {
                    "rel": "alternate",
                    "hreflang": alt.lang,
                    "href": generate_url(_base_for(base_url, alt.lang, overrides), alt.path, alt.lang),
                },
            )
    return _serialise(root)


def render_sitemap_index(sitemaps: Sequence[Sitemap]) -> str:
    """Serialise a ``sitemapindex`` listing the absolute URL of each sitemap."""
    root = ElementTree.Element("sitemapindex", {"xmlns": SITEMAP_NS, "xmlns:xhtml": XHTML_NS})
    for sitemap in sitemaps:
        entry = ElementTree.SubElement(root, "sitemap")
        ElementTree.SubElement(entry, "loc").text = sitemap.location
    return _serialise(root)


def chunk(items: Sequence[Page], size: int) -> list[list[Page]]:
    """Split items into consecutive chunks of at most ``size`` elements."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def build_module_sitemaps(
    module_name: str,
    base_url: str,
    pages_by_locale: Mapping[Locale, Sequence[Page]],
    replace: Sequence[ReplaceRule] = (),
    locale_base_urls: Mapping[Locale, str] | None = None,
    force_split_by_locale: bool = False,
    limit: int = PAGINATION_LIMIT,
) -> list[Sitemap]:
    """
    Partition a module's pages into sitemaps.

    Below ``limit`` pages in total (and unless a split is forced) one sitemap
    named after the module holds every page in locale-then-path order.
    Otherwise each locale is chunked independently into
    ``sitemap-<module>-<locale>`` or, when it needs several chunks,
    ``sitemap-<module>-<locale>-<n>``.

    Args:
        module_name: Module name used in sitemap names.
        base_url: Module base URL.
        pages_by_locale: Aggregated pages per locale.
        replace: Literal substitutions applied to each serialised document.
        locale_base_urls: Optional per-locale base URL overrides.
        force_split_by_locale: Always partition per locale.
        limit: Pagination threshold.

    Returns:
        Sitemaps in locale order.
    """

    def make(name: str, pages: Sequence[Page]) -> Sitemap:
        xml = apply_replacements(render_urlset(base_url, pages, locale_base_urls), replace)
        return Sitemap(name=name, xml=xml, base_url=base_url)

    total = sum(len(pages) for pages in pages_by_locale.values())
    if total < limit and not force_split_by_locale:
        all_pages = [page for pages in pages_by_locale.values() for page in pages]
        return [make(module_name, all_pages)]

    sitemaps: list[Sitemap] = []
    for locale, pages in pages_by_locale.items():
        chunks = chunk(pages, limit)
        for number, pages_chunk in enumerate(chunks, start=1):
            if len(chunks) == 1:
                name = f"sitemap-{module_name}-{locale}"
            else:
                name = f"sitemap-{module_name}-{locale}-{number}"
            sitemaps.append(make(name, pages_chunk))
    LOGGER.info(f"Module {module_name}: {total} pages split into {len(sitemaps)} sitemaps")
    return sitemaps


@dataclass(frozen=True)
class WorkerUnit:
    """One deployable unit and the sitemaps it serves.

    Attributes:
        index: 1-based unit number.
        slots: (slot name, sitemap) pairs; slot names are stable for a given
            position, so redeployments overwrite the same documents.
    """

    index: int
    slots: tuple[tuple[str, Sitemap], ...] = ()

    @property
    def sitemaps(self) -> list[Sitemap]:
        return [sitemap for _, sitemap in self.slots]


@dataclass(frozen=True)
class Distribution:
    """Sitemaps laid out over worker units, plus whatever did not fit."""

    units: tuple[WorkerUnit, ...]
    dropped: tuple[Sitemap, ...] = field(default=())

    @property
    def kept(self) -> list[Sitemap]:
        return [sitemap for unit in self.units for sitemap in unit.sitemaps]


def slot_name(prefix: str, unit_index: int, chunk_index: int) -> str:
    return f"sitemap-{prefix}-{unit_index}-{chunk_index}"


def distribute(
    sitemaps: Sequence[Sitemap],
    prefix: str,
    worker_count: int = WORKER_COUNT,
    per_worker_limit: int = PER_WORKER_LIMIT,
) -> Distribution:
    """
    Lay sitemaps out over a fixed number of worker units.

    Units are filled in order, ``per_worker_limit`` sitemaps each. Every unit
    is materialised even when empty. Sitemaps beyond
    ``worker_count * per_worker_limit`` are dropped.

    Args:
        sitemaps: Sitemaps in build order.
        prefix: Name prefix for slot names (the worker name).
        worker_count: Number of units.
        per_worker_limit: Maximum sitemaps per unit.

    Returns:
        Distribution with exactly ``worker_count`` units.
    """
    capacity = worker_count * per_worker_limit
    kept, dropped = list(sitemaps[:capacity]), tuple(sitemaps[capacity:])
    units = []
    for unit_index in range(1, worker_count + 1):
        start = (unit_index - 1) * per_worker_limit
        unit_sitemaps = kept[start : start + per_worker_limit]
        slots = tuple(
            (slot_name(prefix, unit_index, chunk_index), sitemap)
            for chunk_index, sitemap in enumerate(unit_sitemaps, start=1)
        )
        units.append(WorkerUnit(index=unit_index, slots=slots))
    if dropped:
        LOGGER.warning(
            f"{prefix}: {len(sitemaps)} sitemaps exceed the capacity of {capacity}; "
            f"dropped {len(dropped)}: {', '.join(s.name for s in dropped)}"
        )
    return Distribution(units=tuple(units), dropped=dropped)
