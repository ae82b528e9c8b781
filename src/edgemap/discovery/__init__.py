"""Locale and page discovery from upstream listing APIs.

Providers are selected by the type tag in a module's ``locales_api`` and
``pages_api`` configuration:

- ``cms``: tree-structured CMS pages with per-locale detail checks
- ``catalog``: paginated catalog items, identical across locales
"""

from edgemap.discovery.base import (
    LOCALE_SOURCES,
    PAGE_SOURCES,
    LocaleSource,
    PageSource,
    get_locale_source,
    get_page_source,
)
from edgemap.discovery.catalog import CatalogPageSource
from edgemap.discovery.cms import CmsLocaleSource, CmsPageSource, flatten_tree

__all__ = [
    # Registries
    "LOCALE_SOURCES",
    "PAGE_SOURCES",
    "LocaleSource",
    "PageSource",
    "get_locale_source",
    "get_page_source",
    # Providers
    "CatalogPageSource",
    "CmsLocaleSource",
    "CmsPageSource",
    "flatten_tree",
]
