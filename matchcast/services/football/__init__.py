"""Sports data collaborators backed by API-Football."""

from matchcast.services.football.client import FootballAPIClient
from matchcast.services.football.data_service import FootballDataService
from matchcast.services.football.league_stats import (
    LeagueStatsService,
    calculate_league_statistics,
)

__all__ = [
    "FootballAPIClient",
    "FootballDataService",
    "LeagueStatsService",
    "calculate_league_statistics",
]
