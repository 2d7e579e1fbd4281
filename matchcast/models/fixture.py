"""
Fixture models.

A fixture is one scheduled match. Only the fields the pipeline needs
to key, order and describe a match are modelled; everything else from
the upstream payload is left untouched in the match data blobs.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel


class TeamRef(BaseModel):
    """One side of a fixture"""

    id: int
    name: str
    logo: Optional[str] = None


class Fixture(BaseModel):
    """Scheduled match"""

    fixture_id: int
    league_key: str
    league_id: int
    league_name: str
    season: int
    round: Optional[str] = None
    kickoff: datetime
    status: str = "NS"
    home_team: TeamRef
    away_team: TeamRef
    venue: Optional[str] = None
    city: Optional[str] = None

    @property
    def match_name(self) -> str:
        return f"{self.home_team.name} vs {self.away_team.name}"

    def has_started(self, now: Optional[datetime] = None) -> bool:
        """True once kickoff is no longer in the future."""
        now = now or datetime.now(timezone.utc)
        kickoff = self.kickoff
        if kickoff.tzinfo is None:
            kickoff = kickoff.replace(tzinfo=timezone.utc)
        return kickoff <= now

    def summary(self) -> Dict[str, Any]:
        """Compact description stored alongside predictions."""
        return {
            "id": self.fixture_id,
            "home_team": self.home_team.name,
            "away_team": self.away_team.name,
            "date": self.kickoff.isoformat(),
            "league": self.league_name,
            "venue": self.venue,
        }

    @classmethod
    def from_api(
        cls, raw: Dict[str, Any], league_key: str, season: Optional[int] = None
    ) -> "Fixture":
        """Build from an upstream `fixtures` response item.

        Raises:
            KeyError: If a required field is missing
            pydantic.ValidationError: If a field has the wrong shape
        """
        fixture = raw["fixture"]
        league = raw.get("league") or {}
        teams = raw["teams"]
        venue = fixture.get("venue") or {}
        return cls(
            fixture_id=fixture["id"],
            league_key=league_key,
            league_id=league.get("id", 0),
            league_name=league.get("name", league_key),
            season=league.get("season") or season or 0,
            round=league.get("round"),
            kickoff=fixture["date"],
            status=(fixture.get("status") or {}).get("short", "NS"),
            home_team=TeamRef(**teams["home"]),
            away_team=TeamRef(**teams["away"]),
            venue=venue.get("name"),
            city=venue.get("city"),
        )
