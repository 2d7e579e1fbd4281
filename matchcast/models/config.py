from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from matchcast.models.cache import CacheConfig
from matchcast.models.llm import LLMConfig, RetryConfig, ValidationConfig


def get_current_season(today: Optional[date] = None) -> int:
    """Season year of the European calendar (starts in August)."""
    today = today or date.today()
    return today.year if today.month >= 8 else today.year - 1


class LeagueConfig(BaseModel):
    """A competition we generate predictions for"""

    id: int = Field(..., ge=1, description="Upstream league identifier")
    name: str
    country: str = ""
    enabled: bool = True


DEFAULT_LEAGUES: Dict[str, LeagueConfig] = {
    "epl": LeagueConfig(id=39, name="Premier League", country="England"),
    "bundesliga": LeagueConfig(id=78, name="Bundesliga", country="Germany"),
    "seriea": LeagueConfig(id=135, name="Serie A", country="Italy"),
    "laliga": LeagueConfig(id=140, name="La Liga", country="Spain"),
    "ligue1": LeagueConfig(id=61, name="Ligue 1", country="France"),
    "ucl": LeagueConfig(id=2, name="UEFA Champions League", country="World"),
    "europa": LeagueConfig(id=3, name="UEFA Europa League", country="World"),
}


class FootballApiConfig(BaseModel):
    """Sports data API settings"""

    base_url: str = "https://v3.football.api-sports.io"
    api_key: str = Field(default="", description="x-apisports-key header value")
    timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)
    requests_per_minute: int = Field(default=30, ge=1, le=6000)
    burst_size: int = Field(default=1, ge=1, le=100)
    season: Optional[int] = Field(
        default=None, ge=2000, le=2100, description="Override the current season"
    )
    retry: RetryConfig = Field(
        default_factory=lambda: RetryConfig(
            max_attempts=6,
            base_delay_seconds=10.0,
            backoff_multiplier=2.0,
            max_delay_seconds=300.0,
        )
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def current_season(self) -> int:
        return self.season or get_current_season()


class GenerationConfig(BaseModel):
    """Generation run pacing"""

    days_ahead: int = Field(default=7, ge=1, le=30)
    max_fixtures_per_league: int = Field(default=10, ge=1, le=100)
    delay_between_predictions_seconds: float = Field(default=10.0, ge=0.0)
    delay_after_rate_limit_seconds: float = Field(default=60.0, ge=0.0)
    delay_between_leagues_seconds: float = Field(default=1.0, ge=0.0)


class ScheduleConfig(BaseModel):
    """Recurring trigger settings"""

    enabled: bool = True
    hour: int = Field(default=3, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    timezone: str = "America/New_York"


class ServerConfig(BaseModel):
    """HTTP server settings"""

    host: str = "0.0.0.0"
    port: int = Field(default=3001, ge=1, le=65535)
    log_level: str = "info"


class LoggingConfig(BaseModel):
    """Structured logging settings"""

    level: str = "INFO"
    json_output: bool = True


class AppConfig(BaseModel):
    """Root application configuration"""

    model_config = ConfigDict(protected_namespaces=())

    leagues: Dict[str, LeagueConfig] = Field(
        default_factory=lambda: {k: v.model_copy() for k, v in DEFAULT_LEAGUES.items()}
    )
    football_api: FootballApiConfig = Field(default_factory=FootballApiConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("leagues")
    @classmethod
    def normalize_league_keys(
        cls, v: Dict[str, LeagueConfig]
    ) -> Dict[str, LeagueConfig]:
        if not v:
            raise ValueError("At least one league must be configured")
        return {key.strip().lower(): league for key, league in v.items()}

    @property
    def enabled_leagues(self) -> List[str]:
        return [key for key, league in self.leagues.items() if league.enabled]
