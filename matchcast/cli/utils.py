"""Shared CLI utilities.

Provides common functionality for all CLI commands.
"""

import functools
from pathlib import Path
from typing import Callable, TypeVar

import structlog
import typer

from matchcast.models.config import AppConfig
from matchcast.observability.logging import configure_logging
from matchcast.services.cache_service import CacheService
from matchcast.services.config_manager import ConfigManager, ConfigValidationError

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = "config/matchcast.yaml"

# Type variable for decorator
F = TypeVar("F", bound=Callable)


def config_option() -> Path:
    return typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        help="Path to matchcast config YAML",
    )


def load_config(config_path: Path) -> AppConfig:
    """Load and validate configuration, then configure logging from it.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    config_manager = ConfigManager(config_path=str(config_path))
    try:
        config = config_manager.load_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        typer.secho(f"Configuration Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    configure_logging(level=config.logging.level, json_output=config.logging.json_output)
    return config


def open_cache(config: AppConfig) -> CacheService:
    return CacheService(config.cache)


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling.

    Catches exceptions and displays user-friendly error messages.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            logger.exception("command_failed")
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)
