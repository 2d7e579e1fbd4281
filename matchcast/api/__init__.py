"""HTTP surface: cached data reads, admin triggers, health and metrics.

Usage:
    from matchcast.api import create_app, run_server_async
"""

from matchcast.api.server import create_app, run_server_async

__all__ = ["create_app", "run_server_async"]
