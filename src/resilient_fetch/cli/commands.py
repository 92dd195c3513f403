"""CLI commands for conditional fetches."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
import httpx
import structlog
import yaml
from pydantic import ValidationError

from resilient_fetch import __version__
from resilient_fetch.fetch.cache import FreshnessStore
from resilient_fetch.fetch.client import Client
from resilient_fetch.fetch.config import FetchConfig
from resilient_fetch.fetch.connection import format_http_date
from resilient_fetch.fetch.constants import MARKER_UNKNOWN
from resilient_fetch.fetch.trust import TrustPolicy
from resilient_fetch.observability.logging import bind_fetch_context, configure_logging
from resilient_fetch.settings import get_settings
from resilient_fetch.store import MemoryStore, StateStore


logger = structlog.get_logger()


@contextmanager
def _open_store(state_path: Path | None) -> Iterator[FreshnessStore]:
    """Yield a SQLite store for ``state_path``, or a memory store if None."""
    if state_path is None:
        yield MemoryStore()
        return
    with StateStore(state_path) as store:
        yield store


def _load_config(config_path: Path | None) -> FetchConfig:
    """Load the fetch configuration, exiting with a message on failure."""
    if config_path is None:
        return FetchConfig()
    try:
        return FetchConfig.from_yaml(config_path)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        click.echo(f"Error: invalid configuration {config_path}: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Resilient conditional HTTP fetch CLI."""


@cli.command()
@click.argument("url")
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SQLite database holding Last-Modified markers.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML fetch configuration.",
)
@click.option(
    "--ca-bundle",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="PEM bundle of CAs to trust for HTTPS.",
)
@click.option(
    "--timeout",
    type=click.IntRange(min=2),
    default=None,
    help="Backoff base delay in seconds (at least 2).",
)
@click.option(
    "--power",
    type=click.IntRange(min=0),
    default=None,
    help="Backoff exponent; the longest wait is timeout ** power seconds.",
)
@click.option(
    "--json-logs/--console-logs",
    default=None,
    help="Log format (default from RESILIENT_FETCH_JSON_LOGS).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def get(  # noqa: PLR0913
    url: str,
    state_path: Path | None,
    config_path: Path | None,
    ca_bundle: Path | None,
    timeout: int | None,
    power: int | None,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Fetch URL if it changed since the stored Last-Modified marker.

    Prints the body when the resource changed and exits 0. A 304 response
    prints a notice to stderr and exits 0. Exits 1 when every attempt failed.
    """
    settings = get_settings()
    configure_logging(
        level=logging.DEBUG if verbose else settings.log_level_number,
        json_format=settings.json_logs if json_logs is None else json_logs,
    )
    bind_fetch_context(command="get")

    config = _load_config(config_path or settings.config_path)
    ca_bundle = ca_bundle or settings.ca_bundle
    trust_policy = TrustPolicy.from_ca_bundle(ca_bundle) if ca_bundle else None

    with _open_store(state_path or settings.state_path) as store:
        client = Client(store, trust_policy=trust_policy, config=config)
        result = client.fetch(url, timeout=timeout, power=power)

    if result is None:
        click.echo(f"Error: could not fetch {url}", err=True)
        sys.exit(1)
    if result.not_modified:
        click.echo(f"Not modified: {url}", err=True)
        return
    click.echo(result.body or "", nl=False)


@cli.command()
@click.argument("url")
@click.option(
    "--state",
    "state_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="SQLite database holding Last-Modified markers.",
)
@click.option("--clear", is_flag=True, help="Remove the stored marker.")
def marker(url: str, state_path: Path, clear: bool) -> None:
    """Show or clear the Last-Modified marker stored for URL."""
    configure_logging(level=logging.WARNING, json_format=False)
    try:
        key = str(httpx.URL(url))
    except httpx.InvalidURL as e:
        click.echo(f"Error: invalid URL {url}: {e}", err=True)
        sys.exit(1)

    with StateStore(state_path) as store:
        if clear:
            removed = store.delete(key)
            click.echo(f"Cleared: {key}" if removed else f"No marker: {key}")
            return

        value = store.get_long(key, MARKER_UNKNOWN)

    if value > MARKER_UNKNOWN:
        click.echo(f"{key}\t{value}\t{format_http_date(value)}")
    else:
        click.echo(f"No marker: {key}")
