"""CLI commands for fetching registry specifications."""

import json
import logging
import sys
import uuid
from pathlib import Path

import click

from gemfetch import __version__
from gemfetch.fetch.errors import FailureRecord, FetchFailure
from gemfetch.fetch.hints import format_failure
from gemfetch.observability.logging import (
    bind_session_context,
    clear_session_context,
    configure_logging,
    get_logger,
)
from gemfetch.rubygems.fetcher import Fetcher
from gemfetch.rubygems.index import Index
from gemfetch.rubygems.specification import EndpointSpecification
from gemfetch.settings import FetcherSettings, get_settings, load_settings


logger = get_logger(__name__)


def _load_settings(config_path: Path | None) -> FetcherSettings:
    """Load settings from a YAML file or the environment, exit on failure."""
    if config_path is None:
        return get_settings()
    try:
        return load_settings(config_path)
    except (ValueError, OSError) as e:
        click.echo(f"Error: Could not load settings from {config_path}: {e}", err=True)
        sys.exit(1)


def _index_to_dicts(index: Index) -> list[dict[str, object]]:
    """Render an index as JSON-ready dictionaries.

    Dependencies are only listed for specifications that already carry
    them, so rendering never triggers per-file fetches.
    """
    rows: list[dict[str, object]] = []
    for name in index.names:
        for spec in sorted(index.search(name), key=lambda s: (s.version, s.platform)):
            row: dict[str, object] = {
                "name": spec.name,
                "version": str(spec.version),
                "platform": spec.platform,
            }
            if isinstance(spec, EndpointSpecification):
                row["dependencies"] = {
                    dep.name: str(dep.requirement) for dep in spec.dependencies
                }
            rows.append(row)
    return rows


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Gem registry specification fetcher."""


@cli.command()
@click.argument("names", nargs=-1)
@click.option(
    "--source",
    "source",
    required=True,
    type=str,
    help="Registry URL (e.g., https://rubygems.org/).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to a YAML settings file.",
)
@click.option(
    "--full-index",
    is_flag=True,
    help="Skip the dependency API and download the full index.",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
def specs(  # noqa: PLR0913
    names: tuple[str, ...],
    source: str,
    config_path: Path | None,
    full_index: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """Fetch specifications for NAMES and their dependencies.

    Without NAMES (or with --full-index) every specification the registry
    lists is fetched.
    """
    configure_logging(
        level=logging.DEBUG if verbose else logging.WARNING,
        json_format=False,
    )
    settings = _load_settings(config_path)
    requested = None if full_index or not names else list(names)

    session_id = str(uuid.uuid4())
    try:
        with Fetcher(source, settings=settings) as fetcher:
            bind_session_context(session_id, str(fetcher.uri))
            index = fetcher.specs(requested)
            logger.debug("fetch_metrics", component="cli", **fetcher.metrics.to_dict())
    except FetchFailure as e:
        record = FailureRecord.from_exception(e)
        logger.debug("fetch_failed", component="cli", **record.model_dump(mode="json"))
        click.echo(format_failure(e), err=True)
        sys.exit(1)
    finally:
        clear_session_context()

    rows = _index_to_dicts(index)
    if json_output:
        click.echo(json.dumps(rows, indent=2))
        return

    for row in rows:
        platform = row["platform"]
        suffix = "" if platform == "ruby" else f" ({platform})"
        click.echo(f"{row['name']} {row['version']}{suffix}")
        for dep_name, requirement in dict(row.get("dependencies") or {}).items():
            click.echo(f"    {dep_name} {requirement}")
