"""Upload commands."""

from pathlib import Path

import click

from edgemap.cli._common import (
    app,
    config_option,
    configure_logging,
    load_workers,
    verbose_option,
    worker_option,
)
from edgemap.config import EdgemapSettings


@app.command("upload", help="Build sitemaps and upload them as worker scripts.")
@config_option
@worker_option
@click.option(
    "--isolate-failures/--fail-fast",
    default=None,
    help="Continue with the next worker when one fails. Defaults to the config file's isolate_failures.",
)
@verbose_option
def upload_cmd(
    config_path: Path | None,
    worker_names: tuple[str, ...],
    isolate_failures: bool | None,
    verbose: bool,
) -> None:
    """Publish sitemaps for every selected worker, one worker at a time.

    Examples:
        edgemap upload
        edgemap upload --worker sitemap-a --verbose
        edgemap upload --isolate-failures
    """
    import asyncio

    from edgemap.exceptions import EdgemapError
    from edgemap.services import SitemapPublisher

    settings = EdgemapSettings()
    configure_logging(verbose=verbose, level=settings.log_level)
    config, workers = load_workers(settings, config_path, worker_names)
    isolate = config.isolate_failures if isolate_failures is None else isolate_failures

    try:
        report = asyncio.run(SitemapPublisher(settings).publish_all(workers, isolate_failures=isolate))
    except EdgemapError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e

    for name in report.published:
        click.echo(f"Published {name}")
    for name, dropped in report.dropped.items():
        click.echo(f"{name}: dropped {len(dropped)} sitemaps over capacity", err=True)
    for name, error in report.failed.items():
        click.echo(f"Failed {name}: {error}", err=True)
    if not report.success:
        raise SystemExit(1)


@app.command("upload-file", help="Upload a worker script serving one static file (e.g. robots.txt).")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "script_name", required=True, help="Script name on the upload target.")
@click.option(
    "--content-type",
    default="text/plain; charset=UTF-8",
    show_default=True,
    help="Content-Type header served with the file.",
)
@config_option
@worker_option
@verbose_option
def upload_file_cmd(
    file: Path,
    script_name: str,
    content_type: str,
    config_path: Path | None,
    worker_names: tuple[str, ...],
    verbose: bool,
) -> None:
    """Publish a static file with the credentials of a configured worker.

    Examples:
        edgemap upload-file robots.txt --name robots-a --worker sitemap-a
    """
    import asyncio

    from edgemap.exceptions import EdgemapError
    from edgemap.services import SitemapPublisher

    settings = EdgemapSettings()
    configure_logging(verbose=verbose, level=settings.log_level)
    _, workers = load_workers(settings, config_path, worker_names)
    if len(workers) != 1:
        raise click.UsageError("Select exactly one worker with --worker for its credentials.")

    content = file.read_text(encoding="utf-8")
    try:
        asyncio.run(SitemapPublisher(settings).publish_file(workers[0], script_name, content, content_type))
    except EdgemapError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e
    click.echo(f"Uploaded {file} as {script_name}")
