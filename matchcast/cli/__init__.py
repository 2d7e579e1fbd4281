"""Matchcast CLI Package.

Usage:
    python -m matchcast.cli generate --config config/matchcast.yaml
    python -m matchcast.cli serve
    python -m matchcast.cli cache stats
    python -m matchcast.cli validate config/matchcast.yaml
"""

import typer

from matchcast.cli.cache import cache_app
from matchcast.cli.generate import generate_command
from matchcast.cli.serve import serve_command
from matchcast.cli.validate import validate_command

app = typer.Typer(help="Matchcast: cached football data and AI match predictions")

app.command(name="generate")(generate_command)
app.command(name="serve")(serve_command)
app.command(name="validate")(validate_command)

app.add_typer(cache_app, name="cache")

__all__ = [
    "app",
    "generate_command",
    "serve_command",
    "validate_command",
    "cache_app",
]
