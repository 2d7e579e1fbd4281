"""Fixture listing and per-fixture data aggregation.

Sits between the orchestrator/API and FootballAPIClient:
- Upcoming fixtures per league, read through the fixtures cache
- Comprehensive match data for one fixture, fetched in concurrent batches
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from matchcast.models.config import AppConfig
from matchcast.models.fixture import Fixture
from matchcast.services.cache_service import CacheService
from matchcast.services.football import processing
from matchcast.services.football.client import FootballAPIClient
from matchcast.utils.exceptions import FixtureListError, TierRestrictedError

logger = structlog.get_logger()


class FootballDataService:
    """Builds fixture lists and match-data payloads from the sports API"""

    def __init__(
        self,
        client: FootballAPIClient,
        cache: CacheService,
        config: AppConfig,
    ):
        self.client = client
        self.cache = cache
        self.config = config

    @property
    def season(self) -> int:
        return self.config.football_api.current_season

    async def _fetch_optional(
        self, endpoint: str, params: Dict[str, Any]
    ) -> Optional[Any]:
        """Fetch an endpoint, mapping plan restrictions to "no data"."""
        try:
            return await self.client.get(endpoint, params)
        except TierRestrictedError:
            logger.info("endpoint_restricted_no_data", endpoint=endpoint)
            return None

    # ==================== Fixtures ====================

    async def get_upcoming_fixtures(
        self, league_key: str, now: Optional[datetime] = None
    ) -> List[Fixture]:
        """
        Upcoming not-started fixtures for a league.

        Served from the fixtures cache when fresh; otherwise fetched,
        filtered to future kickoffs, sorted, capped and cached.

        Args:
            league_key: Configured league key (e.g. "epl")
            now: Reference time for the "upcoming" filter

        Returns:
            Fixtures ordered by kickoff

        Raises:
            KeyError: Unknown league key
            MatchcastError: Upstream failure other than a plan restriction
        """
        league = self.config.leagues[league_key]
        endpoint = f"fixtures/{league_key}"

        cached = await asyncio.to_thread(self.cache.get_fixtures, league_key)
        if cached is not None:
            await asyncio.to_thread(
                self.cache.log_call, endpoint, success=True, cached=True
            )
            logger.debug("fixtures_cache_hit", league=league_key, count=len(cached))
            return [Fixture.model_validate(item) for item in cached]

        now = now or datetime.now(timezone.utc)
        today = now.date()
        days_ahead = self.config.generation.days_ahead
        params = {
            "league": league.id,
            "season": self.season,
            "from": today.isoformat(),
            "to": (today + timedelta(days=days_ahead)).isoformat(),
        }

        try:
            raw = await self._fetch_optional("fixtures", params)
        except Exception:
            await asyncio.to_thread(
                self.cache.log_call, endpoint, success=False, cached=False
            )
            raise

        fixtures = []
        for item in raw or []:
            try:
                fixture = Fixture.from_api(item, league_key, season=self.season)
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning("fixture_parse_failed", league=league_key, error=str(e))
                continue
            if fixture.status == "NS" and not fixture.has_started(now):
                fixtures.append(fixture)

        fixtures.sort(key=lambda f: f.kickoff)
        fixtures = fixtures[: self.config.generation.max_fixtures_per_league]

        await asyncio.to_thread(
            self.cache.set_fixtures,
            league_key,
            [f.model_dump(mode="json") for f in fixtures],
        )
        await asyncio.to_thread(
            self.cache.log_call, endpoint, success=True, cached=False
        )

        logger.info("fixtures_fetched", league=league_key, count=len(fixtures))
        return fixtures

    async def get_all_upcoming_fixtures(
        self, league_keys: Optional[List[str]] = None
    ) -> List[Fixture]:
        """
        Upcoming fixtures across leagues.

        A failing league is logged and skipped. Only when every league
        fails is the listing itself considered failed.

        Raises:
            FixtureListError: No league could be listed
        """
        league_keys = league_keys or self.config.enabled_leagues
        fixtures: List[Fixture] = []
        failures: Dict[str, str] = {}

        for league_key in league_keys:
            try:
                fixtures.extend(await self.get_upcoming_fixtures(league_key))
            except Exception as e:
                failures[league_key] = str(e)
                logger.error("league_fixtures_failed", league=league_key, error=str(e))

        if league_keys and len(failures) == len(league_keys):
            details = ", ".join(f"{k}: {v}" for k, v in failures.items())
            raise FixtureListError(
                f"Could not list fixtures for any league ({details})"
            )

        fixtures.sort(key=lambda f: f.kickoff)
        logger.info(
            "upcoming_fixtures_listed",
            leagues=len(league_keys),
            failed_leagues=len(failures),
            fixtures=len(fixtures),
        )
        return fixtures

    async def find_upcoming_fixture(self, fixture_id: int) -> Optional[Fixture]:
        """Look a fixture up in the upcoming listings of the enabled leagues.

        Raises:
            FixtureListError: No league could be listed
        """
        for fixture in await self.get_all_upcoming_fixtures():
            if fixture.fixture_id == fixture_id:
                return fixture
        return None

    # ==================== Match Data ====================

    async def get_comprehensive_match_data(self, fixture: Fixture) -> Dict[str, Any]:
        """
        Aggregate everything the prompt needs about one fixture.

        Sub-requests run in three concurrent batches. Restricted
        endpoints contribute no data; any other failure propagates.

        Args:
            fixture: Fixture to describe

        Returns:
            Match data payload (opaque to the cache)
        """
        home_id = fixture.home_team.id
        away_id = fixture.away_team.id
        league_id = fixture.league_id
        season = fixture.season or self.season
        league_params = {"league": league_id, "season": season}

        logger.info("match_data_fetching", fixture_id=fixture.fixture_id)

        home_stats, away_stats, standings = await asyncio.gather(
            self._fetch_optional("teams/statistics", {**league_params, "team": home_id}),
            self._fetch_optional("teams/statistics", {**league_params, "team": away_id}),
            self._fetch_optional("standings", league_params),
        )

        h2h, home_recent_raw, away_recent_raw = await asyncio.gather(
            self._fetch_optional(
                "fixtures/headtohead", {"h2h": f"{home_id}-{away_id}", "last": 10}
            ),
            self._fetch_optional(
                "fixtures", {"team": home_id, "season": season, "last": 10}
            ),
            self._fetch_optional(
                "fixtures", {"team": away_id, "season": season, "last": 10}
            ),
        )

        (
            home_injuries,
            away_injuries,
            api_prediction,
            top_scorers,
            top_assists,
        ) = await asyncio.gather(
            self._fetch_optional("injuries", {"team": home_id, "season": season}),
            self._fetch_optional("injuries", {"team": away_id, "season": season}),
            self._fetch_optional("predictions", {"fixture": fixture.fixture_id}),
            self._fetch_optional("players/topscorers", league_params),
            self._fetch_optional("players/topassists", league_params),
        )

        home_recent = processing.process_recent_matches(home_recent_raw, home_id)
        away_recent = processing.process_recent_matches(away_recent_raw, away_id)

        match_data = {
            "fixture": fixture.summary(),
            "home_stats": processing.extract_team_stats(_first(home_stats)),
            "away_stats": processing.extract_team_stats(_first(away_stats)),
            "home_recent_matches": home_recent,
            "away_recent_matches": away_recent,
            "h2h": processing.process_h2h(h2h, home_id),
            "standings": processing.extract_standings(standings, home_id, away_id),
            "api_prediction": processing.extract_api_prediction(
                _first(api_prediction), home_recent, away_recent
            ),
            "home_injuries": processing.process_injuries(home_injuries),
            "away_injuries": processing.process_injuries(away_injuries),
            "top_scorers": processing.process_top_players(
                top_scorers, home_id, away_id
            ),
            "top_assists": processing.process_top_players(
                top_assists, home_id, away_id
            ),
            "season": season,
            "fetched_at": datetime.now(timezone.utc).isoformat(),
        }

        logger.info("match_data_fetched", fixture_id=fixture.fixture_id)
        return match_data


def _first(payload: Any) -> Any:
    """`teams/statistics` returns an object, `predictions` a one-item list."""
    if isinstance(payload, list):
        return payload[0] if payload else None
    return payload
