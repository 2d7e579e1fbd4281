"""Tests for the per-fixture generation loop."""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, call

import pytest

from matchcast.models.cache import CacheConfig
from matchcast.models.config import AppConfig, GenerationConfig, LeagueConfig
from matchcast.models.fixture import Fixture, TeamRef
from matchcast.orchestration.orchestrator import (
    PredictionOrchestrator,
    build_orchestrator,
    is_rate_limit_error,
)
from matchcast.services.cache_service import CacheService
from matchcast.services.football import FootballAPIClient
from matchcast.services.llm.exceptions import RateLimitError as LLMRateLimitError
from matchcast.utils.exceptions import (
    FixtureListError,
    PredictionValidationError,
    RateLimitError,
    UpstreamUnavailableError,
)

NOW = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)


def _fixture(fixture_id, kickoff=None, league_key="epl"):
    return Fixture(
        fixture_id=fixture_id,
        league_key=league_key,
        league_id=39,
        league_name="Premier League",
        season=2025,
        kickoff=kickoff or NOW + timedelta(days=1, hours=fixture_id),
        home_team=TeamRef(id=fixture_id * 10, name=f"Home {fixture_id}"),
        away_team=TeamRef(id=fixture_id * 10 + 1, name=f"Away {fixture_id}"),
    )


def _generated(fixture, match_data, league_stats=None):
    return {
        "analysis": f"Analysis for {fixture.fixture_id}",
        "metadata": {"model": "claude-test", "provider": "anthropic"},
    }


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        leagues={"epl": LeagueConfig(id=39, name="Premier League")},
        generation=GenerationConfig(
            delay_between_predictions_seconds=10,
            delay_after_rate_limit_seconds=60,
        ),
        cache=CacheConfig(backend="json", cache_dir=str(tmp_path)),
    )


@pytest.fixture
def cache(config):
    service = CacheService(config.cache, clock=lambda: NOW.timestamp())
    yield service
    service.close()


@pytest.fixture
def data_service():
    service = MagicMock()
    service.get_all_upcoming_fixtures = AsyncMock(return_value=[])
    service.get_comprehensive_match_data = AsyncMock(
        side_effect=lambda fixture: {"fixture": fixture.summary(), "standings": None}
    )
    return service


@pytest.fixture
def llm_service():
    service = MagicMock()
    service.generate_prediction = AsyncMock(side_effect=_generated)
    return service


@pytest.fixture
def league_stats_service():
    service = MagicMock()
    service.get_all_league_stats = AsyncMock(return_value={"epl": {"matches_played": 60}})
    return service


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def orchestrator(cache, data_service, llm_service, league_stats_service, config, sleep):
    return PredictionOrchestrator(
        cache=cache,
        data_service=data_service,
        llm_service=llm_service,
        league_stats_service=league_stats_service,
        config=config,
        sleep=sleep,
        clock=lambda: NOW.timestamp(),
    )


class TestGenerateAllPredictions:
    @pytest.mark.asyncio
    async def test_generates_and_caches_every_fixture(
        self, orchestrator, data_service, cache, sleep
    ):
        fixtures = [_fixture(1), _fixture(2), _fixture(3)]
        data_service.get_all_upcoming_fixtures.return_value = fixtures

        stats = await orchestrator.generate_all_predictions()

        assert (stats.total, stats.success, stats.failed, stats.cached) == (3, 3, 0, 0)
        assert stats.league_stats_loaded == 1
        for fixture in fixtures:
            prediction = cache.get_prediction(fixture.fixture_id)
            assert prediction["prediction"] == f"Analysis for {fixture.fixture_id}"
            assert prediction["fixture"]["id"] == fixture.fixture_id
            assert cache.get_match_data(fixture.fixture_id) is not None
        # No delay after the last fixture
        assert sleep.await_args_list == [call(10), call(10)]

    @pytest.mark.asyncio
    async def test_second_run_is_served_entirely_from_cache(
        self, orchestrator, data_service, llm_service, sleep
    ):
        data_service.get_all_upcoming_fixtures.return_value = [_fixture(1), _fixture(2)]
        await orchestrator.generate_all_predictions()
        data_service.get_comprehensive_match_data.reset_mock()
        llm_service.generate_prediction.reset_mock()
        sleep.reset_mock()

        stats = await orchestrator.generate_all_predictions()

        assert stats.cached == stats.total == 2
        assert stats.success == 0
        data_service.get_comprehensive_match_data.assert_not_awaited()
        llm_service.generate_prediction.assert_not_awaited()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failures_are_confined_to_their_fixture(
        self, orchestrator, data_service, llm_service, cache
    ):
        fixtures = [_fixture(n) for n in range(1, 6)]
        data_service.get_all_upcoming_fixtures.return_value = fixtures

        async def match_data(fixture):
            if fixture.fixture_id == 2:
                raise UpstreamUnavailableError("Server error: 503")
            return {"fixture": fixture.summary()}

        async def generate(fixture, match_data, league_stats=None):
            if fixture.fixture_id == 4:
                raise PredictionValidationError("Prediction too short")
            return _generated(fixture, match_data)

        data_service.get_comprehensive_match_data.side_effect = match_data
        llm_service.generate_prediction.side_effect = generate

        stats = await orchestrator.generate_all_predictions()

        assert (stats.total, stats.success, stats.failed) == (5, 3, 2)
        assert [e["fixture_id"] for e in stats.errors] == [2, 4]
        assert cache.get_prediction(2) is None
        assert cache.get_prediction(4) is None
        assert cache.get_match_data(4) is None
        assert cache.get_prediction(5) is not None

    @pytest.mark.asyncio
    async def test_fixture_list_failure_propagates(self, orchestrator, data_service):
        data_service.get_all_upcoming_fixtures.side_effect = FixtureListError("all down")

        with pytest.raises(FixtureListError):
            await orchestrator.generate_all_predictions()

    @pytest.mark.asyncio
    async def test_rate_limit_uses_longer_delay(
        self, orchestrator, data_service, llm_service, sleep
    ):
        data_service.get_all_upcoming_fixtures.return_value = [
            _fixture(1),
            _fixture(2),
            _fixture(3),
        ]
        llm_service.generate_prediction.side_effect = [
            LLMRateLimitError(provider="anthropic"),
            _generated(_fixture(2), {}),
            _generated(_fixture(3), {}),
        ]

        stats = await orchestrator.generate_all_predictions()

        assert stats.failed == 1
        assert sleep.await_args_list == [call(60), call(10)]

    @pytest.mark.asyncio
    async def test_started_fixtures_are_skipped(self, orchestrator, data_service, llm_service):
        data_service.get_all_upcoming_fixtures.return_value = [
            _fixture(1, kickoff=NOW - timedelta(minutes=5)),
            _fixture(2),
        ]

        stats = await orchestrator.generate_all_predictions()

        assert stats.skipped == 1
        assert stats.success == 1
        assert llm_service.generate_prediction.await_count == 1

    @pytest.mark.asyncio
    async def test_league_stats_failure_is_not_fatal(
        self, orchestrator, data_service, league_stats_service
    ):
        league_stats_service.get_all_league_stats.side_effect = Exception("boom")
        data_service.get_all_upcoming_fixtures.return_value = [_fixture(1)]

        stats = await orchestrator.generate_all_predictions()

        assert stats.league_stats_loaded == 0
        assert stats.success == 1

    @pytest.mark.asyncio
    async def test_every_fixture_outcome_is_logged(self, orchestrator, data_service, cache):
        data_service.get_all_upcoming_fixtures.return_value = [_fixture(1)]
        await orchestrator.generate_all_predictions()
        await orchestrator.generate_all_predictions()

        calls = cache.get_stats().api_calls_24h
        assert calls.total == 2
        assert calls.cached == 1
        assert calls.cache_hit_rate == "50.0%"


class TestGenerateSinglePrediction:
    @pytest.mark.asyncio
    async def test_match_data_written_before_prediction(
        self, data_service, llm_service, league_stats_service, config
    ):
        cache = MagicMock()
        orchestrator = PredictionOrchestrator(
            cache, data_service, llm_service, league_stats_service, config
        )

        await orchestrator.generate_single_prediction(_fixture(1))

        names = [c[0] for c in cache.method_calls]
        assert names == ["set_match_data", "set_prediction"]

    @pytest.mark.asyncio
    async def test_payload_carries_provider_extras(self, orchestrator, data_service):
        data_service.get_comprehensive_match_data.side_effect = None
        data_service.get_comprehensive_match_data.return_value = {
            "api_prediction": {
                "predicted_lineups": {"home": "4-3-3", "away": "3-5-2"},
                "win_probability": {"home": "50%", "draw": "25%", "away": "25%"},
            },
            "home_injuries": [{"player": "X"}],
        }

        prediction = await orchestrator.generate_single_prediction(_fixture(1))

        assert prediction["formations"] == {"home": "4-3-3", "away": "3-5-2"}
        assert prediction["win_probability"]["home"] == "50%"
        assert prediction["injuries"] == {"home": [{"player": "X"}], "away": []}
        assert prediction["generated_at"] == NOW.isoformat()


def test_is_rate_limit_error():
    assert is_rate_limit_error(RateLimitError("429"))
    assert is_rate_limit_error(LLMRateLimitError())
    assert not is_rate_limit_error(UpstreamUnavailableError("503"))


class TestEventLoopResponsiveness:
    @pytest.mark.asyncio
    async def test_slow_cache_read_does_not_stall_loop(
        self, cache, orchestrator, data_service
    ):
        data_service.get_all_upcoming_fixtures.return_value = [_fixture(1)]

        def slow_get_prediction(fixture_id):
            # Stands in for a SQLite lock held by another process
            time.sleep(0.3)
            return None

        cache.get_prediction = slow_get_prediction
        ticks = 0
        done = asyncio.Event()

        async def ticker():
            nonlocal ticks
            while not done.is_set():
                ticks += 1
                await asyncio.sleep(0.01)

        ticking = asyncio.create_task(ticker())
        try:
            await orchestrator.generate_all_predictions()
        finally:
            done.set()
            await ticking

        assert ticks >= 10


class TestBuildOrchestrator:
    def test_shares_the_given_client(self, config):
        config.llm.api_key = "test-key"
        cache = MagicMock()
        client = FootballAPIClient(config.football_api)

        orchestrator = build_orchestrator(config, cache, client=client)

        assert orchestrator.data_service.client is client
        assert orchestrator.league_stats_service.client is client

    def test_builds_one_client_when_none_given(self, config):
        config.llm.api_key = "test-key"

        orchestrator = build_orchestrator(config, MagicMock())

        assert orchestrator.data_service.client is orchestrator.league_stats_service.client
