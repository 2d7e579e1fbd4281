import os
from pathlib import Path
from string import Template
from typing import Any, Dict, List, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from matchcast.models.config import AppConfig

logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """The config file exists but cannot be used."""


class ConfigManager:
    """Loads application configuration from YAML with ${VAR} substitution"""

    def __init__(self, config_path: str = "config/matchcast.yaml"):
        self.config_path = Path(config_path)
        self.env_loaded = False
        self._config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """Load, substitute and validate once; later calls return the same object.

        Raises:
            FileNotFoundError: The YAML file does not exist
            ConfigValidationError: Unreadable, not YAML, not a mapping, or
                rejected by the AppConfig schema
        """
        if self._config:
            return self._config

        if not self.env_loaded:  # pragma: no cover
            load_dotenv()
            self.env_loaded = True

        data = self._read_mapping()
        try:
            self._config = AppConfig(**data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            leagues=len(self._config.enabled_leagues),
            cache_backend=self._config.cache.backend,
        )
        return self._config

    def _read_mapping(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            text = self.config_path.read_text()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        # Unknown ${VAR}s stay as written; check_environment reports them.
        rendered = Template(text).safe_substitute(os.environ)
        try:
            data = yaml.safe_load(rendered)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")
        return data


def _is_unset(value: str) -> bool:
    """Blank, or an unsubstituted ${VAR} placeholder."""
    value = (value or "").strip()
    return not value or (value.startswith("${") and value.endswith("}"))


def check_environment(config: AppConfig) -> List[str]:
    """List configuration problems that would stop a generation run."""
    problems = []
    if _is_unset(config.football_api.api_key):
        problems.append("Sports API key is not set (football_api.api_key)")
    if _is_unset(config.llm.api_key):
        problems.append("LLM API key is not set (llm.api_key)")
    if not config.enabled_leagues:
        problems.append("No leagues are enabled")
    return problems
