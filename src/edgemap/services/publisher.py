"""Publisher service: build and upload every configured worker."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from edgemap.config import EdgemapSettings, Worker
from edgemap.exceptions import generate_correlation_id
from edgemap.models import ProxyConfig
from edgemap.script import build_single_file_script
from edgemap.services.builder import SitemapBuilder, WorkerBuild
from edgemap.transport import DEFAULT_USER_AGENT, Fetcher
from edgemap.upload import ScriptUploader
from edgemap.utils import log_with_correlation

LOGGER = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Outcome of a publishing run."""

    published: list[str] = field(default_factory=list)
    failed: dict[str, Exception] = field(default_factory=dict)
    dropped: dict[str, list[str]] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed


class SitemapPublisher:
    """Build sitemaps and upload them, one worker at a time.

    Workers are processed strictly in sequence: a worker's scripts are all
    uploaded before the next worker is built.

    Usage:
        publisher = SitemapPublisher(settings)
        report = await publisher.publish_all(resolve_workers(config))
    """

    def __init__(
        self,
        settings: EdgemapSettings | None = None,
        builder: SitemapBuilder | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize publisher.

        Args:
            settings: Process settings (defaults read from the environment).
            builder: Optional builder (created from settings if not provided).
            transport: Optional httpx transport shared by every fetcher
                (used by tests to stub the network).
        """
        self._settings = settings or EdgemapSettings()
        self._transport = transport
        self._builder = builder or SitemapBuilder(fetcher_factory=self.make_fetcher)

    @property
    def builder(self) -> SitemapBuilder:
        return self._builder

    def make_fetcher(self, proxy: ProxyConfig | None) -> Fetcher:
        """Create a fetcher honouring the settings and an optional proxy."""
        return Fetcher(
            proxy=proxy,
            timeout=self._settings.timeout,
            user_agent=self._settings.user_agent or DEFAULT_USER_AGENT,
            transport=self._transport,
        )

    async def upload_build(self, build: WorkerBuild, correlation_id: str | None = None) -> None:
        """
        Upload every unit script of a build with the worker's own credentials.

        Raises:
            TemplateError: If a template is missing or malformed.
            UploadError: If the upload API rejects a script.
        """
        worker = build.worker
        scripts = build.scripts(self._settings.template_dir)
        async with self.make_fetcher(worker.proxy) as fetcher:
            uploader = ScriptUploader(worker.auth, fetcher, api_url=self._settings.api_url, correlation_id=correlation_id)
            for script in scripts:
                await uploader.upload(worker.account_id, script)

    async def publish_worker(self, worker: Worker) -> WorkerBuild:
        """Build and upload one worker."""
        correlation_id = generate_correlation_id()
        log_with_correlation(
            LOGGER,
            logging.INFO,
            f"Updating worker {worker.name} ({len(worker.modules)} modules)",
            correlation_id=correlation_id,
            worker=worker.name,
        )
        build = await self._builder.build_worker(worker, correlation_id)
        await self.upload_build(build, correlation_id)
        log_with_correlation(
            LOGGER,
            logging.INFO,
            f"Worker {worker.name} updated: {len(build.distribution.kept)} sitemaps in "
            f"{len(build.distribution.units)} units",
            correlation_id=correlation_id,
            worker=worker.name,
        )
        return build

    async def publish_all(self, workers: Sequence[Worker], isolate_failures: bool = False) -> RunReport:
        """
        Publish workers in order.

        Args:
            workers: Resolved workers.
            isolate_failures: Keep going after a failing worker instead of
                aborting the run.

        Returns:
            Run report.

        Raises:
            Exception: The first failure, unless ``isolate_failures`` is set.
        """
        report = RunReport()
        for worker in workers:
            try:
                build = await self.publish_worker(worker)
            except Exception as e:
                if not isolate_failures:
                    raise
                LOGGER.error(f"Worker {worker.name} failed: {e}", exc_info=True)
                report.failed[worker.name] = e
                continue
            report.published.append(worker.name)
            if build.distribution.dropped:
                report.dropped[worker.name] = [s.name for s in build.distribution.dropped]
        return report

    async def publish_file(
        self,
        worker: Worker,
        script_name: str,
        content: str,
        content_type: str = "text/plain; charset=UTF-8",
    ) -> None:
        """Upload a script serving one static document with a worker's credentials."""
        script = build_single_file_script(script_name, content, content_type, self._settings.template_dir)
        async with self.make_fetcher(worker.proxy) as fetcher:
            uploader = ScriptUploader(worker.auth, fetcher, api_url=self._settings.api_url)
            await uploader.upload(worker.account_id, script)


def write_build(build: WorkerBuild, output_dir: Path) -> list[Path]:
    """
    Write a worker's documents to ``<output_dir>/<worker>/<name>.xml``.

    Returns:
        Written file paths.
    """
    target = output_dir / build.worker.name
    target.mkdir(parents=True, exist_ok=True)
    written = []
    for sitemap in build.sitemaps:
        path = target / f"{sitemap.name}.xml"
        path.write_text(sitemap.xml, encoding="utf-8")
        written.append(path)
    return written
