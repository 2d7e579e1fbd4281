"""Acceptance checks for generated predictions and match data."""

from typing import Any, Dict, List, Optional

from matchcast.models.llm import ValidationConfig
from matchcast.utils.exceptions import PredictionValidationError


class PredictionValidator:
    """Accepts a prediction iff it is long enough and names every
    required section (case-insensitive substring match)."""

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or ValidationConfig()

    def missing_sections(self, text: str) -> List[str]:
        upper = text.upper()
        return [s for s in self.config.required_sections if s.upper() not in upper]

    def is_valid(self, text: Optional[str]) -> bool:
        if not text or len(text) < self.config.min_length:
            return False
        return not self.missing_sections(text)

    def validate(self, text: Optional[str]) -> str:
        """Return the text unchanged or raise PredictionValidationError."""
        if not text:
            raise PredictionValidationError("Prediction is empty")
        if len(text) < self.config.min_length:
            raise PredictionValidationError(
                f"Prediction too short: {len(text)} < {self.config.min_length} chars"
            )
        missing = self.missing_sections(text)
        if missing:
            raise PredictionValidationError(
                f"Prediction missing sections: {', '.join(missing)}",
                missing_sections=missing,
            )
        return text


def assess_data_quality(match_data: Dict[str, Any]) -> str:
    """Grade how complete a match-data payload is.

    Eight data points are checked; the share present maps to
    Excellent (>=90%), Good (>=70%), Fair (>=50%) or Limited.
    """
    recent_home = (match_data.get("home_recent_matches") or {}).get("matches")
    recent_away = (match_data.get("away_recent_matches") or {}).get("matches")
    top_scorers = match_data.get("top_scorers") or {}

    checks = [
        bool(match_data.get("home_stats") and match_data.get("away_stats")),
        bool(recent_home),
        bool(recent_away),
        bool((match_data.get("h2h") or {}).get("total")),
        bool(match_data.get("standings")),
        bool(match_data.get("api_prediction")),
        match_data.get("home_injuries") is not None
        and match_data.get("away_injuries") is not None,
        bool(top_scorers.get("home") or top_scorers.get("away")),
    ]

    percentage = sum(checks) / len(checks) * 100
    if percentage >= 90:
        return "Excellent"
    if percentage >= 70:
        return "Good"
    if percentage >= 50:
        return "Fair"
    return "Limited"
