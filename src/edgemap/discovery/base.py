"""Provider interfaces and the type-tag registries that select them."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar

import httpx

from edgemap.exceptions import ConfigurationError, ProviderError
from edgemap.models import Filter, Locale
from edgemap.transport import Fetcher

LOGGER = logging.getLogger(__name__)


def decode_json(response: httpx.Response, provider: str, what: str) -> Any:
    """
    Decode a successful JSON response or raise a descriptive error.

    Args:
        response: Response to decode.
        provider: Provider type tag for error context.
        what: Description of the requested resource.

    Raises:
        ProviderError: On a non-2xx status or an undecodable body.
    """
    if not response.is_success:
        raise ProviderError(
            f"{what} responded with {response.status_code}: {response.text[:200]}",
            provider=provider,
            status_code=response.status_code,
            context={"url": str(response.request.url)},
        )
    try:
        return response.json()
    except ValueError as e:
        raise ProviderError(
            f"{what} returned invalid JSON: {e}",
            provider=provider,
            status_code=response.status_code,
        ) from e


class LocaleSource(ABC):
    """Lists the locale codes of a site."""

    type_tag: ClassVar[str]

    def __init__(self, url: str, fetcher: Fetcher, correlation_id: str | None = None) -> None:
        self.url = url
        self.fetcher = fetcher
        self.correlation_id = correlation_id

    @abstractmethod
    async def get_locales(self, filter_: Filter) -> list[Locale]:
        """Return the active locale codes after applying the filter."""


class PageSource(ABC):
    """Lists the indexable page paths of a site.

    Discovery runs in two phases so the listing can run concurrently with
    the locale lookup: :meth:`list_candidates` applies the filter to the
    raw listing, then :meth:`paths_by_locale` resolves the candidates for
    each active locale.
    """

    type_tag: ClassVar[str]

    def __init__(self, url: str, fetcher: Fetcher, correlation_id: str | None = None) -> None:
        self.url = url
        self.fetcher = fetcher
        self.correlation_id = correlation_id

    @abstractmethod
    async def list_candidates(self, filter_: Filter) -> list[str]:
        """Return the filtered candidate paths, in provider order."""

    @abstractmethod
    async def paths_by_locale(self, locales: Sequence[Locale], candidates: Sequence[str]) -> dict[Locale, list[str]]:
        """Return the candidates visible in each locale, in provider order."""

    async def get_pages(self, locales: Sequence[Locale], filter_: Filter) -> dict[Locale, list[str]]:
        """Run both discovery phases."""
        candidates = await self.list_candidates(filter_)
        return await self.paths_by_locale(locales, candidates)


LOCALE_SOURCES: dict[str, type[LocaleSource]] = {}
PAGE_SOURCES: dict[str, type[PageSource]] = {}


def register_locale_source(cls: type[LocaleSource]) -> type[LocaleSource]:
    """Class decorator adding a locale source to the registry."""
    LOCALE_SOURCES[cls.type_tag] = cls
    return cls


def register_page_source(cls: type[PageSource]) -> type[PageSource]:
    """Class decorator adding a page source to the registry."""
    PAGE_SOURCES[cls.type_tag] = cls
    return cls


def get_locale_source(
    type_tag: str, url: str, fetcher: Fetcher, correlation_id: str | None = None
) -> LocaleSource:
    """
    Instantiate the locale source registered for a type tag.

    Raises:
        ConfigurationError: If the tag is not registered.
    """
    cls = LOCALE_SOURCES.get(type_tag)
    if cls is None:
        raise ConfigurationError(
            f"Unsupported locales API type: {type_tag!r}. Must be one of: {', '.join(sorted(LOCALE_SOURCES))}",
            correlation_id=correlation_id,
            context={"type": type_tag},
        )
    return cls(url, fetcher, correlation_id=correlation_id)


def get_page_source(type_tag: str, url: str, fetcher: Fetcher, correlation_id: str | None = None) -> PageSource:
    """
    Instantiate the page source registered for a type tag.

    Raises:
        ConfigurationError: If the tag is not registered.
    """
    cls = PAGE_SOURCES.get(type_tag)
    if cls is None:
        raise ConfigurationError(
            f"Unsupported pages API type: {type_tag!r}. Must be one of: {', '.join(sorted(PAGE_SOURCES))}",
            correlation_id=correlation_id,
            context={"type": type_tag},
        )
    return cls(url, fetcher, correlation_id=correlation_id)
