"""Validate command for configuration files.

Validates configuration file syntax and semantics, and reports missing
credentials.
"""

from pathlib import Path

import typer

from matchcast.cli.utils import (
    display_error,
    display_success,
    display_warning,
    handle_errors,
)
from matchcast.services.config_manager import ConfigManager, check_environment


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
    strict: bool = typer.Option(
        False, "--strict", help="Fail when API keys are missing"
    ),
):
    """Validate configuration file syntax and semantics."""
    try:
        config = ConfigManager(config_path=str(config_path)).load_config()
    except Exception as e:
        display_error(f"Validation failed: {e}")
        raise typer.Exit(code=1)

    display_success("Configuration is valid!")
    typer.echo(f"  Leagues: {', '.join(config.enabled_leagues)}")
    typer.echo(f"  LLM model: {config.llm.model}")
    typer.echo(f"  Cache: {config.cache.backend} at {config.cache.cache_dir}")

    problems = check_environment(config)
    for problem in problems:
        display_warning(f"  - {problem}")
    if problems and strict:
        raise typer.Exit(code=1)
