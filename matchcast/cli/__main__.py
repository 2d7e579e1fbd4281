"""CLI entry point.

Allows running the CLI as a module: python -m matchcast.cli
"""

from matchcast.cli import app

if __name__ == "__main__":
    app()
