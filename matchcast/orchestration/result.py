"""Generation run statistics."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class GenerationStats:
    """Counters and errors of one generation run.

    Created with all counters at zero when a run starts and mutated only
    by that run.
    """

    total: int = 0
    success: int = 0
    failed: int = 0
    cached: int = 0
    skipped: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    league_stats_loaded: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    fatal_error: Optional[str] = None

    @property
    def processed(self) -> int:
        return self.success + self.failed + self.cached + self.skipped

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.completed_at is None:
            return None
        return round((self.completed_at - self.started_at).total_seconds(), 2)

    def record_error(self, fixture_id: Any, match: str, error: str) -> None:
        self.errors.append({"fixture_id": fixture_id, "match": match, "error": error})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "cached": self.cached,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "league_stats_loaded": self.league_stats_loaded,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "duration_seconds": self.duration_seconds,
            "fatal_error": self.fatal_error,
        }
