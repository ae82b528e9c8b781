"""Configuration validation and local generation commands."""

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


@app.command("validate", help="Check the configuration and print the resolved workers.")
@config_option
@worker_option
def validate_cmd(config_path: Path | None, worker_names: tuple[str, ...]) -> None:
    """Resolve the configuration without touching the network.

    Examples:
        edgemap validate
        edgemap validate --config sites.json --worker sitemap-a
    """
    settings = EdgemapSettings()
    _, workers = load_workers(settings, config_path, worker_names)
    for worker in workers:
        click.echo(f"{worker.name} (account {worker.account_id}, {worker.deployment})")
        for module in worker.modules:
            mode = "include" if module.filter.is_include else "exclude" if module.filter.rules else "none"
            click.echo(
                f"  {module.name}: {module.base_url} "
                f"[locales={module.locales_api.type} pages={module.pages_api.type} filter={mode}]"
            )
    click.echo(f"Configuration OK: {len(workers)} workers")


@app.command("generate", help="Build sitemaps and write them to a directory without uploading.")
@config_option
@worker_option
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=Path("sitemaps"),
    show_default=True,
    help="Output directory; one subdirectory per worker.",
)
@verbose_option
def generate_cmd(config_path: Path | None, worker_names: tuple[str, ...], output: Path, verbose: bool) -> None:
    """Generate sitemaps for every selected worker.

    Examples:
        edgemap generate --output build/sitemaps
    """
    import asyncio

    from edgemap.exceptions import EdgemapError
    from edgemap.services import SitemapPublisher
    from edgemap.services.publisher import write_build

    settings = EdgemapSettings()
    configure_logging(verbose=verbose, level=settings.log_level)
    _, workers = load_workers(settings, config_path, worker_names)

    async def run() -> None:
        publisher = SitemapPublisher(settings)
        for worker in workers:
            build = await publisher.builder.build_worker(worker)
            written = write_build(build, output)
            click.echo(f"Wrote {len(written)} sitemaps for {worker.name} to {output / worker.name}")
            if build.distribution.dropped:
                click.echo(
                    f"Dropped {len(build.distribution.dropped)} sitemaps over capacity for {worker.name}",
                    err=True,
                )

    try:
        asyncio.run(run())
    except EdgemapError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e
