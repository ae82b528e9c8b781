"""Common CLI utilities and the main app group."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from edgemap import __version__
from edgemap.config import Config, EdgemapSettings, Worker, load_config, resolve_workers
from edgemap.exceptions import EdgemapError

console = Console(stderr=True)
_configured = False


def configure_logging(*, verbose: bool = False, level: str = "INFO") -> None:
    """Configure logging with Rich handler. Call once at startup."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
            )
        ],
        force=True,
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    _configured = True


def load_workers(
    settings: EdgemapSettings, config_path: Path | None, worker_names: tuple[str, ...] = ()
) -> tuple[Config, list[Worker]]:
    """
    Load the configuration and resolve the selected workers.

    Raises:
        click.ClickException: On any configuration error.
    """
    path = config_path or settings.config_path
    try:
        config = load_config(path)
        workers = resolve_workers(config)
    except EdgemapError as e:
        raise click.ClickException(e.message) from e

    if worker_names:
        unknown = set(worker_names) - {w.name for w in workers}
        if unknown:
            raise click.ClickException(f"Unknown worker(s): {', '.join(sorted(unknown))}")
        workers = [w for w in workers if w.name in worker_names]
    return config, workers


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file. Defaults to EDGEMAP_CONFIG_PATH or ./edgemap.json.",
)
worker_option = click.option(
    "--worker",
    "-w",
    "worker_names",
    multiple=True,
    help="Only process the named worker (repeatable).",
)
verbose_option = click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")


@click.group(help="Localized sitemap generation for edge workers.")
@click.version_option(__version__, prog_name="edgemap")
def app() -> None:
    """
    Entry point for the edgemap CLI.

    Provides commands for validating configuration, generating sitemaps
    locally and publishing them as worker scripts.
    """
