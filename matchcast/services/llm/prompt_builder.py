"""Prompt Builder Module

This module handles:
- Building the match analysis prompt from aggregated match data
- Rendering each data section (standings, form, H2H, injuries, ...)
- Stating the required output sections
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

import structlog

from matchcast.models.fixture import Fixture

logger = structlog.get_logger()

RULE = "=" * 63


def _section(title: str, body: str) -> str:
    return f"{RULE}\n{title}\n{RULE}\n{body}"


def _na(value: Any) -> Any:
    return "N/A" if value in (None, "") else value


def _format_date(value: Optional[str]) -> str:
    if not value:
        return "TBD"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime(
            "%Y-%m-%d"
        )
    except ValueError:
        return value


class PredictionPromptBuilder:
    """Builds the analysis prompt for a single fixture.

    The prompt pins the model to the supplied data: it states today's
    date and season, lists every data section (or says it is missing),
    and enumerates the sections the answer must contain. The two
    sections checked by PredictionValidator are always requested.
    """

    def build(
        self,
        fixture: Fixture,
        match_data: Dict[str, Any],
        league_stats: Optional[Dict[str, Any]] = None,
        today: Optional[date] = None,
    ) -> str:
        """Build the prediction prompt.

        Args:
            fixture: Fixture being analysed
            match_data: Aggregated match data payload
            league_stats: League-wide statistics (optional)
            today: Date stated in the prompt (default: today)

        Returns:
            Complete prompt string
        """
        today = today or date.today()
        season = match_data.get("season") or fixture.season

        sections = [
            self._standings_section(fixture, match_data),
            self._form_section(match_data),
            self._h2h_section(match_data),
            self._statistics_section(match_data),
            self._injuries_section(match_data),
            self._lineups_section(match_data),
            self._top_players_section(match_data),
            self._league_section(league_stats),
        ]

        prompt = self._build_prompt_template(
            fixture=fixture,
            today=today,
            season=season,
            data_sections="\n\n".join(sections),
            match_data=match_data,
        )

        logger.debug(
            "prompt_built",
            fixture_id=fixture.fixture_id,
            prompt_length=len(prompt),
        )
        return prompt

    def _standings_section(self, fixture: Fixture, match_data: Dict[str, Any]) -> str:
        title = "CURRENT LEAGUE STANDINGS"
        standings = match_data.get("standings")
        if not standings:
            return _section(title, "Standings data not available")

        def row(label: str, team: str, entry: Optional[Dict[str, Any]]) -> str:
            entry = entry or {}
            return (
                f"{label} ({team}):\n"
                f"- Position: {_na(entry.get('position'))}\n"
                f"- Points: {_na(entry.get('points'))}\n"
                f"- Goal Difference: {_na(entry.get('goals_diff'))}\n"
                f"- Form (last 5): {_na(entry.get('form'))}"
            )

        home = standings.get("home") or {}
        away = standings.get("away") or {}
        gap = "N/A"
        if home.get("position") and away.get("position"):
            gap = abs(home["position"] - away["position"])

        body = "\n\n".join(
            [
                "Use these positions, not prior knowledge.",
                row("HOME TEAM", fixture.home_team.name, home),
                row("AWAY TEAM", fixture.away_team.name, away),
                f"Position Gap: {gap} places",
            ]
        )
        return _section(title, body)

    def _form_section(self, match_data: Dict[str, Any]) -> str:
        def matches(recent: Optional[Dict[str, Any]]) -> str:
            rows = (recent or {}).get("matches") or []
            if not rows:
                return "  No recent data"
            lines = []
            for i, m in enumerate(rows, start=1):
                line = f"  {i}. {m['result']} {m['venue']} vs {m['opponent']} ({m['score']})"
                formation = (m.get("lineup") or {}).get("formation")
                if formation:
                    line += f" - Formation: {formation}"
                lines.append(line)
            return "\n".join(lines)

        def players(recent: Optional[Dict[str, Any]]) -> str:
            names = (recent or {}).get("recently_played_players") or []
            return "  " + ", ".join(names) if names else "  No lineup data available"

        def side(label: str, recent_key: str, stats_key: str) -> str:
            stats = match_data.get(stats_key) or {}
            recent = match_data.get(recent_key)
            return (
                f"{label}:\n{matches(recent)}\n\n"
                f"Overall Form: {_na(stats.get('form'))}\n"
                f"Goals Scored (avg): {_na(stats.get('avg_goals_for'))}\n"
                f"Goals Conceded (avg): {_na(stats.get('avg_goals_against'))}\n\n"
                f"Players Recently Used:\n{players(recent)}"
            )

        body = "\n\n".join(
            [
                side("HOME TEAM", "home_recent_matches", "home_stats"),
                side("AWAY TEAM", "away_recent_matches", "away_stats"),
            ]
        )
        return _section("RECENT FORM (Last 5 Matches)", body)

    def _h2h_section(self, match_data: Dict[str, Any]) -> str:
        title = "HEAD-TO-HEAD HISTORY"
        h2h = match_data.get("h2h") or {}
        if not h2h.get("total"):
            return _section(title, "No recent head-to-head data available")

        recent = "\n".join(
            f"  {i}. {m['home_team']} {m['score']} {m['away_team']} "
            f"({_format_date(m.get('date'))})"
            for i, m in enumerate(h2h.get("matches", [])[:5], start=1)
        )
        body = (
            f"Total Meetings: {h2h['total']}\n"
            f"Home Wins: {h2h.get('home_wins', 0)}\n"
            f"Draws: {h2h.get('draws', 0)}\n"
            f"Away Wins: {h2h.get('away_wins', 0)}\n\n"
            f"Recent Meetings:\n{recent}"
        )
        return _section(title, body)

    def _statistics_section(self, match_data: Dict[str, Any]) -> str:
        def side(label: str, stats: Optional[Dict[str, Any]]) -> str:
            if not stats:
                return f"{label}:\n- Season statistics not available"
            return (
                f"{label}:\n"
                f"- Matches Played: {stats.get('played', 0)}\n"
                f"- Record: {stats.get('wins', 0)}W-{stats.get('draws', 0)}D-"
                f"{stats.get('losses', 0)}L\n"
                f"- Goals Scored: {stats.get('goals_for', 0)} "
                f"({_na(stats.get('avg_goals_for'))} per game)\n"
                f"- Goals Conceded: {stats.get('goals_against', 0)} "
                f"({_na(stats.get('avg_goals_against'))} per game)\n"
                f"- Clean Sheets: {stats.get('clean_sheets', 0)}\n"
                f"- Failed to Score: {stats.get('failed_to_score', 0)}"
            )

        body = "\n\n".join(
            [
                side("HOME TEAM", match_data.get("home_stats")),
                side("AWAY TEAM", match_data.get("away_stats")),
            ]
        )
        return _section("SEASON STATISTICS", body)

    def _injuries_section(self, match_data: Dict[str, Any]) -> str:
        def injuries(items: Optional[List[Dict[str, Any]]]) -> str:
            if not items:
                return "  No current injuries"
            lines = []
            for inj in items:
                line = f"  - {inj['player']} ({inj['position']}) - {inj['reason']}"
                if inj.get("expected_return"):
                    line += f" | Return: {_format_date(inj['expected_return'])}"
                lines.append(line)
            return "\n".join(lines)

        body = (
            f"HOME TEAM:\n{injuries(match_data.get('home_injuries'))}\n\n"
            f"AWAY TEAM:\n{injuries(match_data.get('away_injuries'))}"
        )
        return _section("INJURIES & SUSPENSIONS", body)

    def _lineups_section(self, match_data: Dict[str, Any]) -> str:
        prediction = match_data.get("api_prediction")
        if not prediction:
            return _section("PREDICTED LINEUPS", "Lineup predictions not available")

        lineups = prediction.get("predicted_lineups") or {}
        odds = prediction.get("win_probability") or {}
        body = (
            f"HOME FORMATION: {_na(lineups.get('home'))}\n"
            f"AWAY FORMATION: {_na(lineups.get('away'))}\n\n"
            "Win Probability (from data provider):\n"
            f"- Home Win: {_na(odds.get('home'))}\n"
            f"- Draw: {_na(odds.get('draw'))}\n"
            f"- Away Win: {_na(odds.get('away'))}\n\n"
            f"Provider Advice: {_na(prediction.get('advice'))}"
        )
        return _section("PREDICTED LINEUPS & WIN PROBABILITY", body)

    def _top_players_section(self, match_data: Dict[str, Any]) -> str:
        def players(rows: List[Dict[str, Any]]) -> str:
            if not rows:
                return "  No data available"
            return "\n".join(
                f"  - {p.get('name') or 'Unknown'}: {p.get('goals', 0)} goals, "
                f"{p.get('assists', 0)} assists in {p.get('appearances', 0)} apps"
                for p in rows
            )

        scorers = match_data.get("top_scorers") or {}
        assists = match_data.get("top_assists") or {}
        body = (
            "Season totals may include players who have since left the club. "
            "Only name a player if they also appear in the recently used list.\n\n"
            f"HOME TEAM - Top Scorers:\n{players(scorers.get('home', []))}\n\n"
            f"HOME TEAM - Top Assisters:\n{players(assists.get('home', []))}\n\n"
            f"AWAY TEAM - Top Scorers:\n{players(scorers.get('away', []))}\n\n"
            f"AWAY TEAM - Top Assisters:\n{players(assists.get('away', []))}"
        )
        return _section("SEASON PLAYER STATISTICS", body)

    def _league_section(self, league_stats: Optional[Dict[str, Any]]) -> str:
        if not league_stats or not league_stats.get("matches_played"):
            return _section("LEAGUE CONTEXT", "League statistics not available")

        body = (
            f"League: {_na(league_stats.get('league'))}\n"
            f"Season: {_na(league_stats.get('season'))}\n"
            f"Matches Analysed: {league_stats['matches_played']}\n\n"
            "Average Statistics:\n"
            f"- Goals per game: {league_stats.get('goals_per_game')}\n"
            f"- Home win rate: {league_stats.get('home_win_pct')}%\n"
            f"- Draw rate: {league_stats.get('draw_pct')}%\n"
            f"- Away win rate: {league_stats.get('away_win_pct')}%\n"
            f"- BTTS: {league_stats.get('btts_pct')}%\n"
            f"- Over 2.5 goals: {league_stats.get('over_2_5_pct')}%"
        )
        return _section("LEAGUE CONTEXT", body)

    def _build_prompt_template(
        self,
        fixture: Fixture,
        today: date,
        season: Any,
        data_sections: str,
        match_data: Dict[str, Any],
    ) -> str:
        home_stats = match_data.get("home_stats") or {}
        away_stats = match_data.get("away_stats") or {}
        match_info = _section(
            "MATCH INFORMATION",
            f"Competition: {fixture.league_name}\n"
            f"Match: {fixture.match_name}\n"
            f"Date: {fixture.kickoff.strftime('%Y-%m-%d %H:%M %Z')}\n"
            f"Venue: {fixture.venue or 'TBD'}",
        )
        season_label = season
        if str(season).isdigit():
            season_label = f"{season}-{int(season) + 1}"

        prompt = f"""You are an expert football analyst providing professional match predictions.

IMPORTANT CONTEXT
Today's Date: {today.strftime("%B %d, %Y")}
Current Season: {season_label}
Your knowledge may be outdated. Use ONLY the data provided below.

{match_info}

{data_sections}

{RULE}
ANALYSIS INSTRUCTIONS
{RULE}
Your analysis MUST be data-driven and specific. Quote exact numbers.
If injuries are listed you MUST analyse them. Use the standings given,
never guessed positions. Justify the scoreline from the statistics
rather than defaulting to 2-1.

REQUIRED SECTIONS:

**1. EXECUTIVE SUMMARY**
- Predicted scoreline
- Confidence level (0-100%)
- 2-3 sentence summary of why

**2. TACTICAL ANALYSIS**
- Expected formations and key tactical battles

**3. KEY PLAYERS**
- Players from the recently used lists, with scoring likelihood
- Impact of every listed injury

**4. RECENT FORM**
- Last results, scoring patterns, home/away split

**5. LEAGUE POSITION & STAKES**
- Exact positions and points gaps from the standings above

**6. HEAD-TO-HEAD HISTORY**

**7. STATISTICAL DEEP DIVE**
- Over/Under 2.5 goals, BTTS, clean sheet likelihood, xG estimate

**8. MOST LIKELY GOAL SCORERS**
- Top 3 per team, only from the recently used lists

**9. ATTACK VS DEFENSE MATCHUP**
- Home attack ({_na(home_stats.get("avg_goals_for"))} avg) vs Away defense ({_na(away_stats.get("avg_goals_against"))} avg)
- Away attack ({_na(away_stats.get("avg_goals_for"))} avg) vs Home defense ({_na(home_stats.get("avg_goals_against"))} avg)

**10. RISK FACTORS**

**11. FINAL VERDICT**
Predicted Score: [X-X]
Confidence: [0-100]%
Justification: statistical, tactical and contextual bullets
Alternative outcomes and betting recommendations

Base your scoreline on ACTUAL data, not stereotypes."""

        return prompt
