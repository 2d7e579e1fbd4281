"""Season-level league statistics.

Aggregates finished fixtures of the current season into scoring and
result tendencies that give the prompt league context.
"""

import asyncio
from collections import Counter
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from matchcast.models.config import AppConfig
from matchcast.services.cache_service import CacheService
from matchcast.services.football.client import FootballAPIClient
from matchcast.utils.exceptions import TierRestrictedError

logger = structlog.get_logger()


def season_start(season: int) -> date:
    """First day of a season (1 August)."""
    return date(season, 8, 1)


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def calculate_league_statistics(fixtures: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Summarise finished fixtures.

    Fixtures without a final score are ignored.
    """
    scores = []
    for fixture in fixtures:
        goals = fixture.get("goals") or {}
        home, away = goals.get("home"), goals.get("away")
        if home is None or away is None:
            continue
        scores.append((int(home), int(away)))

    played = len(scores)
    if played == 0:
        return {"matches_played": 0}

    total_goals = sum(h + a for h, a in scores)
    home_wins = sum(1 for h, a in scores if h > a)
    draws = sum(1 for h, a in scores if h == a)
    away_wins = played - home_wins - draws
    scorelines = Counter(f"{h}-{a}" for h, a in scores)

    return {
        "matches_played": played,
        "total_goals": total_goals,
        "goals_per_game": round(total_goals / played, 2),
        "home_win_pct": _pct(home_wins, played),
        "draw_pct": _pct(draws, played),
        "away_win_pct": _pct(away_wins, played),
        "btts_pct": _pct(sum(1 for h, a in scores if h > 0 and a > 0), played),
        "over_2_5_pct": _pct(sum(1 for h, a in scores if h + a > 2.5), played),
        "over_3_5_pct": _pct(sum(1 for h, a in scores if h + a > 3.5), played),
        "home_clean_sheet_pct": _pct(sum(1 for _, a in scores if a == 0), played),
        "away_clean_sheet_pct": _pct(sum(1 for h, _ in scores if h == 0), played),
        "home_failed_to_score_pct": _pct(sum(1 for h, _ in scores if h == 0), played),
        "away_failed_to_score_pct": _pct(sum(1 for _, a in scores if a == 0), played),
        "common_scorelines": [
            {"score": score, "count": count, "pct": _pct(count, played)}
            for score, count in scorelines.most_common(5)
        ],
    }


class LeagueStatsService:
    """Read-through league statistics (12h cache)"""

    def __init__(
        self,
        client: FootballAPIClient,
        cache: CacheService,
        config: AppConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.cache = cache
        self.config = config
        self._sleep = sleep

    async def get_league_stats(
        self, league_key: str, today: Optional[date] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Statistics for a league's current season.

        Args:
            league_key: Configured league key
            today: End of the aggregation window (default: today, UTC)

        Returns:
            Statistics dict, or None when unavailable
        """
        league = self.config.leagues.get(league_key)
        if league is None:
            logger.warning("league_unknown", league=league_key)
            return None

        endpoint = f"league-stats/{league_key}"
        cached = await asyncio.to_thread(self.cache.get_league_stats, league_key)
        if cached is not None:
            await asyncio.to_thread(
                self.cache.log_call, endpoint, success=True, cached=True
            )
            return cached

        season = self.config.football_api.current_season
        today = today or datetime.now(timezone.utc).date()
        params = {
            "league": league.id,
            "season": season,
            "from": season_start(season).isoformat(),
            "to": today.isoformat(),
            "status": "FT",
        }

        try:
            fixtures = await self.client.get("fixtures", params)
        except TierRestrictedError:
            logger.warning("league_stats_restricted", league=league_key)
            await asyncio.to_thread(
                self.cache.log_call, endpoint, success=False, cached=False
            )
            return None
        except Exception as e:
            logger.error("league_stats_failed", league=league_key, error=str(e))
            await asyncio.to_thread(
                self.cache.log_call, endpoint, success=False, cached=False
            )
            return None

        stats = calculate_league_statistics(fixtures or [])
        stats.update(
            {
                "league": league.name,
                "league_key": league_key,
                "season": season,
                "calculated_at": datetime.now(timezone.utc).isoformat(),
            }
        )

        await asyncio.to_thread(self.cache.set_league_stats, league_key, stats)
        await asyncio.to_thread(
            self.cache.log_call, endpoint, success=True, cached=False
        )
        logger.info(
            "league_stats_calculated",
            league=league_key,
            matches=stats["matches_played"],
        )
        return stats

    async def get_all_league_stats(
        self, league_keys: Optional[List[str]] = None
    ) -> Dict[str, Dict[str, Any]]:
        """Statistics for several leagues, fetched one after another."""
        league_keys = league_keys or self.config.enabled_leagues
        results: Dict[str, Dict[str, Any]] = {}
        delay = self.config.generation.delay_between_leagues_seconds

        for index, league_key in enumerate(league_keys):
            stats = await self.get_league_stats(league_key)
            if stats is not None:
                results[league_key] = stats
            if delay and index < len(league_keys) - 1:
                await self._sleep(delay)

        return results
