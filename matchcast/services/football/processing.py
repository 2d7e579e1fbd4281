"""Reshape raw API-Football payloads into compact match-data sections.

All helpers are pure and tolerate missing or partial payloads, since
restricted endpoints come back as None.
"""

from typing import Any, Dict, List, Optional


def _dig(data: Any, *path: Any, default: Any = None) -> Any:
    """Nested lookup that returns `default` on any missing step."""
    current = data
    for step in path:
        if isinstance(current, dict):
            current = current.get(step)
        elif isinstance(current, list) and isinstance(step, int):
            current = current[step] if -len(current) <= step < len(current) else None
        else:
            return default
        if current is None:
            return default
    return current


def extract_team_stats(stats: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Season record, goals and form from `teams/statistics`."""
    if not stats:
        return None

    return {
        "form": stats.get("form") or "",
        "played": _dig(stats, "fixtures", "played", "total", default=0),
        "wins": _dig(stats, "fixtures", "wins", "total", default=0),
        "draws": _dig(stats, "fixtures", "draws", "total", default=0),
        "losses": _dig(stats, "fixtures", "loses", "total", default=0),
        "goals_for": _dig(stats, "goals", "for", "total", "total", default=0),
        "goals_against": _dig(stats, "goals", "against", "total", "total", default=0),
        "avg_goals_for": _dig(stats, "goals", "for", "average", "total", default="0"),
        "avg_goals_against": _dig(
            stats, "goals", "against", "average", "total", default="0"
        ),
        "clean_sheets": _dig(stats, "clean_sheet", "total", default=0),
        "failed_to_score": _dig(stats, "failed_to_score", "total", default=0),
        "biggest_win": _dig(stats, "biggest", "wins", "away")
        or _dig(stats, "biggest", "wins", "home")
        or "N/A",
        "biggest_loss": _dig(stats, "biggest", "loses", "away")
        or _dig(stats, "biggest", "loses", "home")
        or "N/A",
    }


def _result(team_score: Optional[int], opp_score: Optional[int]) -> str:
    if team_score is None or opp_score is None:
        return "-"
    if team_score > opp_score:
        return "W"
    if team_score < opp_score:
        return "L"
    return "D"


def process_recent_matches(
    matches: Optional[List[Dict[str, Any]]], team_id: int, limit: int = 5
) -> Dict[str, Any]:
    """Last `limit` results from the team's perspective plus recent starters."""
    if not matches:
        return {"matches": [], "recently_played_players": []}

    recent = []
    players: List[str] = []
    for match in matches[:limit]:
        is_home = _dig(match, "teams", "home", "id") == team_id
        home_goals = _dig(match, "goals", "home")
        away_goals = _dig(match, "goals", "away")
        team_score, opp_score = (
            (home_goals, away_goals) if is_home else (away_goals, home_goals)
        )

        lineup = None
        lineups = match.get("lineups") or []
        team_lineup = _dig(lineups, 0 if is_home else 1)
        if team_lineup:
            names = [
                _dig(p, "player", "name")
                for p in (team_lineup.get("startXI") or [])[:11]
            ]
            lineup = {
                "formation": team_lineup.get("formation"),
                "players": [n for n in names if n],
            }
            for name in lineup["players"]:
                if name not in players:
                    players.append(name)

        opponent_side = "away" if is_home else "home"
        recent.append(
            {
                "date": _dig(match, "fixture", "date"),
                "opponent": _dig(match, "teams", opponent_side, "name"),
                "venue": "H" if is_home else "A",
                "score": f"{team_score}-{opp_score}",
                "result": _result(team_score, opp_score),
                "league": _dig(match, "league", "name"),
                "lineup": lineup,
            }
        )

    return {"matches": recent, "recently_played_players": players[:15]}


def process_h2h(
    matches: Optional[List[Dict[str, Any]]], home_team_id: int
) -> Dict[str, Any]:
    """Head-to-head tally from the perspective of today's home side."""
    summary: Dict[str, Any] = {
        "total": 0,
        "home_wins": 0,
        "draws": 0,
        "away_wins": 0,
        "matches": [],
    }
    if not matches:
        return summary

    for match in matches:
        home_score = _dig(match, "goals", "home")
        away_score = _dig(match, "goals", "away")
        if home_score is None or away_score is None:
            continue
        hosted_by_home_side = _dig(match, "teams", "home", "id") == home_team_id

        if home_score == away_score:
            summary["draws"] += 1
        elif (home_score > away_score) == hosted_by_home_side:
            summary["home_wins"] += 1
        else:
            summary["away_wins"] += 1

        summary["matches"].append(
            {
                "date": _dig(match, "fixture", "date"),
                "home_team": _dig(match, "teams", "home", "name"),
                "away_team": _dig(match, "teams", "away", "name"),
                "score": f"{home_score}-{away_score}",
                "league": _dig(match, "league", "name"),
            }
        )

    summary["total"] = len(summary["matches"])
    return summary


def _standing_row(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    return {
        "position": row.get("rank"),
        "points": row.get("points"),
        "played": _dig(row, "all", "played"),
        "form": row.get("form"),
        "goals_diff": row.get("goalsDiff"),
    }


def extract_standings(
    standings: Optional[List[Dict[str, Any]]], home_team_id: int, away_team_id: int
) -> Optional[Dict[str, Any]]:
    """Table rows for both sides from `standings`."""
    if not standings:
        return None

    table = _dig(standings, 0, "league", "standings", 0, default=[])
    by_team = {_dig(row, "team", "id"): row for row in table}
    return {
        "home": _standing_row(by_team.get(home_team_id)),
        "away": _standing_row(by_team.get(away_team_id)),
    }


def _last_formation(recent: Optional[Dict[str, Any]]) -> Optional[str]:
    return _dig(recent, "matches", 0, "lineup", "formation")


def extract_api_prediction(
    prediction: Optional[Dict[str, Any]],
    home_recent: Optional[Dict[str, Any]] = None,
    away_recent: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Win probabilities, lineups and advice from `predictions`.

    When the API has no predicted lineup, the formation of the side's
    most recent match is used instead.
    """
    if not prediction:
        return None

    home_lineup = _dig(prediction, "predictions", "lineup", "home") or _last_formation(
        home_recent
    )
    away_lineup = _dig(prediction, "predictions", "lineup", "away") or _last_formation(
        away_recent
    )

    return {
        "win_probability": {
            side: _dig(prediction, "predictions", "percent", side, default="N/A")
            for side in ("home", "draw", "away")
        },
        "predicted_lineups": {
            "home": home_lineup or "N/A",
            "away": away_lineup or "N/A",
        },
        "advice": _dig(prediction, "predictions", "advice", default="N/A"),
    }


def process_injuries(injuries: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    if not injuries:
        return []

    return [
        {
            "player": _dig(item, "player", "name", default="Unknown"),
            "position": _dig(item, "player", "type", default="Unknown"),
            "reason": _dig(item, "player", "reason", default="Injury"),
            "expected_return": _dig(item, "fixture", "date"),
        }
        for item in injuries
    ]


def process_top_players(
    players: Optional[List[Dict[str, Any]]],
    home_team_id: int,
    away_team_id: int,
    limit: int = 3,
) -> Dict[str, List[Dict[str, Any]]]:
    """Top scorers/assisters of the league split by side."""
    if not players:
        return {"home": [], "away": []}

    def for_team(team_id: int) -> List[Dict[str, Any]]:
        rows = []
        for item in players:
            if _dig(item, "statistics", 0, "team", "id") != team_id:
                continue
            rows.append(
                {
                    "name": _dig(item, "player", "name"),
                    "goals": _dig(item, "statistics", 0, "goals", "total", default=0),
                    "assists": _dig(
                        item, "statistics", 0, "goals", "assists", default=0
                    ),
                    "appearances": _dig(
                        item, "statistics", 0, "games", "appearences", default=0
                    ),
                }
            )
        return rows[:limit]

    return {"home": for_team(home_team_id), "away": for_team(away_team_id)}
