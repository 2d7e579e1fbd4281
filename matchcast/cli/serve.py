"""Serve command: HTTP API plus the generation and sweep schedule."""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from matchcast.cli.utils import (
    config_option,
    display_success,
    display_warning,
    handle_errors,
    load_config,
    logger,
    open_cache,
)
from matchcast.models.config import AppConfig


@handle_errors
def serve_command(
    config_path: Path = config_option(),
    host: Optional[str] = typer.Option(None, "--host", help="Override server host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Override server port"),
    hour: Optional[int] = typer.Option(
        None, "--hour", min=0, max=23, help="Override daily run hour"
    ),
    minute: Optional[int] = typer.Option(
        None, "--minute", min=0, max=59, help="Override daily run minute"
    ),
    schedule: bool = typer.Option(
        True, "--schedule/--no-schedule", help="Run the daily generation job"
    ),
):
    """Start the API server with the daily generation schedule.

    Press Ctrl+C to stop gracefully.
    """
    config = load_config(config_path)
    if hour is not None:
        config.schedule.hour = hour
    if minute is not None:
        config.schedule.minute = minute

    try:
        asyncio.run(
            _serve(
                config,
                host=host or config.server.host,
                port=port or config.server.port,
                schedule=schedule and config.schedule.enabled,
            )
        )
    except KeyboardInterrupt:
        display_warning("\nServer stopped.")


async def _serve(config: AppConfig, host: str, port: int, schedule: bool) -> None:
    from matchcast.api import create_app, run_server_async
    from matchcast.orchestration import build_orchestrator, get_generation_controller
    from matchcast.scheduling import (
        DAILY_GENERATION_JOB_ID,
        CacheSweepJob,
        DailyPredictionJob,
        PredictionScheduler,
    )
    from matchcast.services.football import (
        FootballAPIClient,
        FootballDataService,
        LeagueStatsService,
    )

    cache = open_cache(config)
    controller = get_generation_controller()
    client = FootballAPIClient(config.football_api)

    def orchestrator_factory():
        return build_orchestrator(config, cache, client=client)

    app = create_app(
        config,
        cache,
        controller,
        data_service=FootballDataService(client, cache, config),
        league_stats_service=LeagueStatsService(client, cache, config),
        orchestrator_factory=orchestrator_factory,
    )

    scheduler = PredictionScheduler(timezone=config.schedule.timezone)
    scheduler.schedule_cache_sweep(
        CacheSweepJob(cache), minutes=config.cache.sweep_interval_minutes
    )
    if schedule:
        scheduler.schedule_daily_generation(
            DailyPredictionJob(
                controller,
                orchestrator_factory,
                next_run=lambda: scheduler.next_run_time(DAILY_GENERATION_JOB_ID),
            ),
            hour=config.schedule.hour,
            minute=config.schedule.minute,
        )

    typer.secho("Starting Matchcast", fg=typer.colors.CYAN, bold=True)
    typer.echo(f"  Leagues: {', '.join(config.enabled_leagues)}")
    typer.echo(f"  API: http://{host}:{port}/api")
    typer.echo(f"  Health endpoint: http://{host}:{port}/health")

    await scheduler.start(block=False)
    if schedule:
        controller.next_run = scheduler.next_run_time(DAILY_GENERATION_JOB_ID)

    jobs = scheduler.get_jobs()
    display_success(f"\nScheduled {len(jobs)} jobs:")
    for job in jobs:
        typer.echo(f"  - {job['id']}: next run at {job['next_run_time'] or 'N/A'}")

    try:
        await run_server_async(
            app, host=host, port=port, log_level=config.server.log_level
        )
    finally:
        await scheduler.shutdown(wait=False)
        cache.close()
        logger.info("matchcast_stopped")
