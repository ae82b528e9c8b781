"""Cross-locale aggregation of filtered page paths into sitemap pages."""

from collections.abc import Mapping, Sequence

from edgemap.models import Alternate, ChangeFrequency, Locale, Page
from edgemap.utils import top_level_segment

# Top-level segment under which the item catalog lives
CATALOG_SEGMENT = "games"

# (priority, change frequency) per path class
ROOT_POLICY: tuple[float, ChangeFrequency] = (1.0, "always")
CATALOG_POLICY: tuple[float, ChangeFrequency] = (0.8, "daily")
DEFAULT_POLICY: tuple[float, ChangeFrequency] = (0.6, "weekly")


def classify_path(path: str) -> tuple[float, ChangeFrequency]:
    """
    Derive priority and change frequency from the top-level path segment.

    Args:
        path: Page path ("" for the site root).

    Returns:
        (priority, changefreq) tuple.
    """
    segment = top_level_segment(path)
    if segment == "":
        return ROOT_POLICY
    if segment == CATALOG_SEGMENT:
        return CATALOG_POLICY
    return DEFAULT_POLICY


def aggregate_by_locale(paths_by_locale: Mapping[Locale, Sequence[str]]) -> dict[Locale, list[Page]]:
    """
    Build pages with hreflang alternates for every (locale, path) pair.

    A path → locales index is built once; each page's alternates are the
    other locales exposing the same path, in locale order. Duplicate paths
    within one locale are emitted once.

    Args:
        paths_by_locale: Filtered paths per locale, in provider order.

    Returns:
        Pages per locale, preserving locale and path order.
    """
    locales_by_path: dict[str, list[Locale]] = {}
    for locale, paths in paths_by_locale.items():
        for path in dict.fromkeys(paths):
            locales_by_path.setdefault(path, []).append(locale)

    pages: dict[Locale, list[Page]] = {}
    for locale, paths in paths_by_locale.items():
        locale_pages: list[Page] = []
        for path in dict.fromkeys(paths):
            priority, changefreq = classify_path(path)
            alternates = tuple(
                Alternate(path=path, lang=other) for other in locales_by_path[path] if other != locale
            )
            locale_pages.append(
                Page(
                    path=path,
                    lang=locale,
                    priority=priority,
                    changefreq=changefreq,
                    alternates=alternates,
                )
            )
        pages[locale] = locale_pages
    return pages


def aggregate(paths_by_locale: Mapping[Locale, Sequence[str]]) -> list[Page]:
    """
    Every aggregated page as one list, in locale-then-path order.

    This is the flat view of :func:`aggregate_by_locale` for callers that
    inspect pages rather than build sitemaps; the builder partitions the
    per-locale view directly.
    """
    return [page for pages in aggregate_by_locale(paths_by_locale).values() for page in pages]
