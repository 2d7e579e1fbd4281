"""Generate command: one prediction generation run.

Exits non-zero when the run fails or any fixture failed, so the command
can be used from cron or CI.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer

from matchcast.cli.utils import (
    config_option,
    display_error,
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_config,
    open_cache,
)
from matchcast.models.config import AppConfig
from matchcast.orchestration import (
    GenerationStats,
    RunState,
    build_orchestrator,
    get_generation_controller,
)
from matchcast.services.config_manager import check_environment


@handle_errors
def generate_command(
    config_path: Path = config_option(),
    leagues: Optional[List[str]] = typer.Option(
        None, "--league", "-l", help="Only these league keys (repeatable)"
    ),
):
    """Generate predictions for all upcoming fixtures."""
    config = load_config(config_path)
    if leagues:
        _restrict_leagues(config, leagues)

    problems = check_environment(config)
    if problems:
        for problem in problems:
            display_error(f"  - {problem}")
        raise typer.Exit(code=1)

    cache = open_cache(config)
    controller = get_generation_controller()
    display_info(f"Generating predictions for: {', '.join(config.enabled_leagues)}")

    try:
        stats = asyncio.run(controller.run(build_orchestrator(config, cache)))
    finally:
        cache.close()

    _display_stats(stats)

    if controller.state == RunState.FAILED or stats.failed > 0:
        raise typer.Exit(code=1)


def _display_stats(stats: GenerationStats) -> None:
    typer.echo("")
    if stats.fatal_error:
        display_error(f"Generation failed: {stats.fatal_error}")
        return

    typer.secho("Generation completed!", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  Total fixtures: {stats.total}")
    typer.echo(f"  Generated: {stats.success}")
    typer.echo(f"  From cache: {stats.cached}")
    typer.echo(f"  Skipped (started): {stats.skipped}")
    typer.echo(f"  Failed: {stats.failed}")
    if stats.duration_seconds is not None:
        typer.echo(f"  Duration: {stats.duration_seconds:.1f}s")

    if stats.errors:
        display_warning(f"\nErrors: {len(stats.errors)}")
        for err in stats.errors:
            typer.echo(f"  - {err.get('match', err.get('fixture_id'))}: {err['error']}")
    elif stats.total:
        display_success("No errors")


def _restrict_leagues(config: AppConfig, leagues: List[str]) -> None:
    selected = {key.strip().lower() for key in leagues}
    unknown = sorted(selected - set(config.leagues))
    if unknown:
        display_error(f"Unknown league(s): {', '.join(unknown)}")
        display_info(f"Available: {', '.join(sorted(config.leagues))}")
        raise typer.Exit(code=1)

    config.leagues = {
        key: league.model_copy(update={"enabled": key in selected})
        for key, league in config.leagues.items()
    }
