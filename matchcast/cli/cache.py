"""Cache commands: statistics, listing, sweeping and clearing."""

import json
from pathlib import Path
from typing import Optional

import typer

from matchcast.cli.utils import (
    config_option,
    display_success,
    display_warning,
    handle_errors,
    load_config,
    open_cache,
)
from matchcast.models.cache import CacheCategory

cache_app = typer.Typer(help="Inspect and maintain the prediction cache")


@cache_app.command(name="stats")
@handle_errors
def cache_stats(
    config_path: Path = config_option(),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Show valid entry counts and 24h call statistics."""
    config = load_config(config_path)
    cache = open_cache(config)
    try:
        stats = cache.get_stats()
    finally:
        cache.close()

    if as_json:
        typer.echo(json.dumps(stats.model_dump(mode="json"), indent=2))
        return

    typer.echo("Cache entries:")
    typer.echo(f"  Fixtures: {stats.cache.fixtures}")
    typer.echo(f"  Match data: {stats.cache.match_data}")
    typer.echo(f"  Predictions: {stats.cache.predictions}")
    typer.echo(f"  League stats: {stats.cache.league_stats}")
    calls = stats.api_calls_24h
    typer.echo("API calls (24h):")
    typer.echo(f"  Total: {calls.total}")
    typer.echo(f"  Cached: {calls.cached}")
    typer.echo(f"  Successful: {calls.successful}")
    typer.echo(f"  Hit rate: {calls.cache_hit_rate}")


@cache_app.command(name="list")
@handle_errors
def cache_list(
    category: CacheCategory = typer.Option(
        CacheCategory.PREDICTION, "--category", help="Cache category to list"
    ),
    config_path: Path = config_option(),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Max rows"),
):
    """List stored entries of a category, newest first."""
    config = load_config(config_path)
    cache = open_cache(config)
    try:
        rows = cache.list_entries(category)
    finally:
        cache.close()

    typer.echo(f"{len(rows)} {category.value} entries")
    for row in rows[:limit] if limit else rows:
        marker = " (expired)" if row["is_expired"] else ""
        typer.echo(f"  {row['key']}: expires {row['expires_at']}{marker}")


@cache_app.command(name="sweep")
@handle_errors
def cache_sweep(config_path: Path = config_option()):
    """Delete expired entries now."""
    config = load_config(config_path)
    cache = open_cache(config)
    try:
        removed = cache.sweep_expired()
    finally:
        cache.close()
    display_success(f"Removed {removed} expired entries")


@cache_app.command(name="clear")
@handle_errors
def cache_clear(
    config_path: Path = config_option(),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every cached entry. The call log is kept."""
    if not yes and not typer.confirm("Delete all cached fixtures, data and predictions?"):
        display_warning("Aborted.")
        raise typer.Exit(code=1)

    config = load_config(config_path)
    cache = open_cache(config)
    try:
        cache.clear_all()
    finally:
        cache.close()
    display_success("Cache cleared")
