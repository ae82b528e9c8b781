"""Builder service: discovery, aggregation and partitioning for one worker."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

from edgemap.aggregate import aggregate_by_locale
from edgemap.config import Module, Worker
from edgemap.discovery import get_locale_source, get_page_source
from edgemap.exceptions import generate_correlation_id
from edgemap.models import Locale, ProxyConfig, Sitemap
from edgemap.script import WorkerScript, build_unit_script
from edgemap.sitemap import (
    PER_WORKER_LIMIT,
    SITEMAP_INDEX_NAME,
    WORKER_COUNT,
    Distribution,
    build_module_sitemaps,
    distribute,
    render_sitemap_index,
)
from edgemap.transport import Fetcher
from edgemap.utils import gather_or_cancel, log_with_correlation

LOGGER = logging.getLogger(__name__)

FetcherFactory: TypeAlias = Callable[[ProxyConfig | None], Fetcher]


@dataclass(frozen=True)
class WorkerBuild:
    """Every document generated for one worker.

    Attributes:
        worker: The resolved worker.
        distribution: Sitemaps laid out over the worker's units.
        sitemap_index: Index of the distributed sitemaps.
    """

    worker: Worker
    distribution: Distribution
    sitemap_index: Sitemap

    @property
    def sitemaps(self) -> list[Sitemap]:
        """Served documents: the index followed by every kept sitemap."""
        return [self.sitemap_index, *self.distribution.kept]

    def script_name(self, unit_index: int) -> str:
        return f"{self.worker.name}-{unit_index}"

    def scripts(self, template_dir: Path | None = None) -> list[WorkerScript]:
        """
        Assemble one script per unit; the first unit also serves the index.

        Raises:
            TemplateError: If a template is missing or malformed.
        """
        return [
            build_unit_script(
                self.script_name(unit.index),
                unit,
                sitemap_index=self.sitemap_index if unit.index == 1 else None,
                mode=self.worker.deployment,
                template_dir=template_dir,
            )
            for unit in self.distribution.units
        ]


class SitemapBuilder:
    """Build the sitemaps of a worker from its modules' listing APIs.

    Usage:
        builder = SitemapBuilder()
        build = await builder.build_worker(worker)
        for sitemap in build.sitemaps:
            print(sitemap.name)
    """

    def __init__(
        self,
        fetcher_factory: FetcherFactory | None = None,
        worker_count: int = WORKER_COUNT,
        per_worker_limit: int = PER_WORKER_LIMIT,
    ) -> None:
        """Initialize builder.

        Args:
            fetcher_factory: Creates a fetcher for a module's proxy
                (defaults to :class:`Fetcher` with default settings).
            worker_count: Units per worker.
            per_worker_limit: Sitemaps per unit.
        """
        self._fetcher_factory = fetcher_factory or (lambda proxy: Fetcher(proxy=proxy))
        self._worker_count = worker_count
        self._per_worker_limit = per_worker_limit

    async def discover(self, module: Module, correlation_id: str | None = None) -> dict[Locale, list[str]]:
        """
        List the filtered paths of a module per locale.

        The locale listing and the page listing are fetched concurrently;
        per-locale resolution starts once both are known.

        Args:
            module: Resolved module.
            correlation_id: Optional correlation ID for log grouping.

        Returns:
            Paths per active locale.

        Raises:
            ConfigurationError: If a provider tag is not registered.
            RetryExhaustedError: If a listing could not be fetched.
        """
        async with self._fetcher_factory(module.proxy) as fetcher:
            locale_source = get_locale_source(module.locales_api.type, module.locales_api.url, fetcher, correlation_id)
            page_source = get_page_source(module.pages_api.type, module.pages_api.url, fetcher, correlation_id)
            locales, candidates = await gather_or_cancel(
                locale_source.get_locales(module.filter),
                page_source.list_candidates(module.filter),
            )
            log_with_correlation(
                LOGGER,
                logging.INFO,
                f"Module {module.name}: {len(locales)} locales, {len(candidates)} candidate pages",
                correlation_id=correlation_id,
            )
            return await page_source.paths_by_locale(locales, candidates)

    async def build_module(self, module: Module, correlation_id: str | None = None) -> list[Sitemap]:
        """Discover, aggregate and partition one module."""
        paths = await self.discover(module, correlation_id)
        pages = aggregate_by_locale(paths)
        sitemaps = build_module_sitemaps(
            module.name,
            module.base_url,
            pages,
            replace=module.replace,
            locale_base_urls=module.locale_base_urls,
            force_split_by_locale=module.force_split_by_locale,
        )
        log_with_correlation(
            LOGGER,
            logging.INFO,
            f"Module {module.name}: {sum(len(p) for p in pages.values())} pages in {len(sitemaps)} sitemaps",
            correlation_id=correlation_id,
        )
        return sitemaps

    async def build_worker(self, worker: Worker, correlation_id: str | None = None) -> WorkerBuild:
        """
        Build every module of a worker, one after another.

        Args:
            worker: Resolved worker.
            correlation_id: Optional correlation ID. If None, generates a new one.

        Returns:
            The worker's distributed sitemaps and their index.
        """
        correlation_id = correlation_id or generate_correlation_id()
        sitemaps: list[Sitemap] = []
        for module in worker.modules:
            sitemaps.extend(await self.build_module(module, correlation_id))

        distribution = distribute(sitemaps, worker.name, self._worker_count, self._per_worker_limit)
        base_url = worker.modules[0].base_url if worker.modules else ""
        index = Sitemap(
            name=SITEMAP_INDEX_NAME,
            xml=render_sitemap_index(distribution.kept),
            base_url=base_url,
        )
        return WorkerBuild(worker=worker, distribution=distribution, sitemap_index=index)
