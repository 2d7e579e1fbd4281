"""Prediction generation orchestration.

Walks the upcoming fixtures one at a time and makes sure each has a
cached prediction, doing upstream work only for fixtures that lack one.

Usage:
    orchestrator = build_orchestrator(config, cache)
    stats = await orchestrator.generate_all_predictions()
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from matchcast.models.config import AppConfig
from matchcast.models.fixture import Fixture
from matchcast.observability.metrics import PREDICTIONS_GENERATED
from matchcast.orchestration.result import GenerationStats
from matchcast.services.cache_service import CacheService
from matchcast.services.football import (
    FootballAPIClient,
    FootballDataService,
    LeagueStatsService,
)
from matchcast.services.llm import LLMService
from matchcast.services.llm.exceptions import RateLimitError as LLMRateLimitError
from matchcast.utils.exceptions import RateLimitError as UpstreamRateLimitError

logger = structlog.get_logger()


def is_rate_limit_error(error: BaseException) -> bool:
    """True for rate limiting reported by either the sports API or the LLM."""
    return isinstance(error, (UpstreamRateLimitError, LLMRateLimitError))


class PredictionOrchestrator:
    """Generates and caches predictions for upcoming fixtures.

    Fixtures are processed strictly in sequence. A failure is confined
    to its fixture; only failing to list fixtures at all aborts the run
    (FixtureListError propagates to the caller).

    Cache reads and writes run in worker threads so a slow store (a
    SQLite lock held by another process) does not stall the event loop.
    """

    def __init__(
        self,
        cache: CacheService,
        data_service: FootballDataService,
        llm_service: LLMService,
        league_stats_service: LeagueStatsService,
        config: AppConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.data_service = data_service
        self.llm_service = llm_service
        self.league_stats_service = league_stats_service
        self.config = config
        self._sleep = sleep
        self._clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    async def generate_all_predictions(
        self, stats: Optional[GenerationStats] = None
    ) -> GenerationStats:
        """
        Run one generation pass over all enabled leagues.

        Args:
            stats: Counters to fill in (lets a controller observe progress)

        Returns:
            Final run statistics

        Raises:
            FixtureListError: The fixture list could not be fetched
        """
        stats = stats or GenerationStats()
        stats.started_at = stats.started_at or self._now()
        generation = self.config.generation
        leagues = self.config.enabled_leagues

        logger.info(
            "generation_started",
            leagues=leagues,
            days_ahead=generation.days_ahead,
        )

        # League statistics enrich prompts but are never required
        try:
            league_stats = await self.league_stats_service.get_all_league_stats(
                leagues
            )
        except Exception as e:
            logger.warning("league_stats_unavailable", error=str(e))
            league_stats = {}
        stats.league_stats_loaded = len(league_stats)

        fixtures = await self.data_service.get_all_upcoming_fixtures(leagues)
        stats.total = len(fixtures)

        if not fixtures:
            logger.info("generation_no_fixtures")

        for index, fixture in enumerate(fixtures):
            is_last = index == len(fixtures) - 1
            log = logger.bind(
                fixture_id=fixture.fixture_id,
                match=fixture.match_name,
                position=f"{index + 1}/{stats.total}",
            )

            cached = await asyncio.to_thread(self.cache.get_prediction, fixture.fixture_id)
            if cached is not None:
                stats.cached += 1
                PREDICTIONS_GENERATED.labels(status="cached").inc()
                await self._log_call(fixture, success=True, cached=True)
                log.info("prediction_already_cached")
                continue

            if fixture.has_started(self._now()):
                stats.skipped += 1
                PREDICTIONS_GENERATED.labels(status="skipped").inc()
                log.info("fixture_skipped_already_started")
                continue

            delay = generation.delay_between_predictions_seconds
            try:
                await self.generate_single_prediction(
                    fixture, league_stats.get(fixture.league_key)
                )
            except Exception as e:
                stats.failed += 1
                stats.record_error(fixture.fixture_id, fixture.match_name, str(e))
                PREDICTIONS_GENERATED.labels(status="failed").inc()
                await self._log_call(fixture, success=False, cached=False)
                log.error(
                    "prediction_failed", error_type=type(e).__name__, error=str(e)
                )
                if is_rate_limit_error(e):
                    delay = generation.delay_after_rate_limit_seconds
                    log.warning("rate_limited_backing_off", delay_seconds=delay)
            else:
                stats.success += 1
                PREDICTIONS_GENERATED.labels(status="success").inc()
                await self._log_call(fixture, success=True, cached=False)
                log.info("prediction_generated")

            if not is_last and delay > 0:
                await self._sleep(delay)

        stats.completed_at = self._now()
        logger.info("generation_finished", **_summary(stats))
        return stats

    async def generate_single_prediction(
        self, fixture: Fixture, league_stats: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Fetch data, generate and cache the prediction for one fixture.

        Nothing is cached unless generation and validation succeed; then
        match data is written before the prediction.

        Returns:
            The cached prediction payload
        """
        match_data = await self.data_service.get_comprehensive_match_data(fixture)
        result = await self.llm_service.generate_prediction(
            fixture, match_data, league_stats
        )

        api_prediction = match_data.get("api_prediction") or {}
        lineups = api_prediction.get("predicted_lineups") or {}
        prediction = {
            "prediction": result["analysis"],
            "metadata": result["metadata"],
            "fixture": fixture.summary(),
            "formations": {
                "home": lineups.get("home", "N/A"),
                "away": lineups.get("away", "N/A"),
            },
            "win_probability": api_prediction.get("win_probability"),
            "injuries": {
                "home": match_data.get("home_injuries") or [],
                "away": match_data.get("away_injuries") or [],
            },
            "standings": match_data.get("standings"),
            "form": {
                "home": match_data.get("home_recent_matches") or {},
                "away": match_data.get("away_recent_matches") or {},
            },
            "generated_at": self._now().isoformat(),
        }

        await asyncio.to_thread(self.cache.set_match_data, fixture.fixture_id, match_data)
        await asyncio.to_thread(self.cache.set_prediction, fixture.fixture_id, prediction)
        return prediction

    async def _log_call(self, fixture: Fixture, success: bool, cached: bool) -> None:
        await asyncio.to_thread(
            self.cache.log_call,
            f"prediction/{fixture.fixture_id}",
            success=success,
            cached=cached,
        )


def _summary(stats: GenerationStats) -> Dict[str, Any]:
    return {
        "total": stats.total,
        "success": stats.success,
        "failed": stats.failed,
        "cached": stats.cached,
        "skipped": stats.skipped,
        "duration_seconds": stats.duration_seconds,
    }


def build_orchestrator(
    config: AppConfig,
    cache: CacheService,
    client: Optional[FootballAPIClient] = None,
) -> PredictionOrchestrator:
    """Wire the production collaborators around a shared cache.

    Pass the process's FootballAPIClient so generation and API read-through
    draw from one rate-limit bucket.
    """
    client = client or FootballAPIClient(config.football_api)
    return PredictionOrchestrator(
        cache=cache,
        data_service=FootballDataService(client, cache, config),
        llm_service=LLMService(config.llm, config.validation),
        league_stats_service=LeagueStatsService(client, cache, config),
        config=config,
    )
