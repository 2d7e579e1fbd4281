"""Correlation IDs for generation runs, scheduled jobs and API requests.

The ID lives in a ContextVar, so it follows a run across await points
and is copied into tasks it spawns. The logging processor stamps it
on every entry.

Usage:
    from matchcast.observability.context import correlation_id_context

    with correlation_id_context("generation-20250203-030000"):
        await orchestrator.generate_all_predictions()
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_current: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def new_correlation_id(prefix: Optional[str] = None) -> str:
    """Random ID, e.g. ``http-3f2a9c41b0de``; a bare UUID4 without a prefix."""
    if prefix is None:
        return str(uuid.uuid4())
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def set_correlation_id(corr_id: Optional[str] = None) -> str:
    """Set (or generate) the ID for the current context and return it."""
    corr_id = corr_id or new_correlation_id()
    _current.set(corr_id)
    return corr_id


def get_correlation_id() -> Optional[str]:
    return _current.get()


def clear_correlation_id() -> None:
    _current.set(None)


@contextmanager
def correlation_id_context(corr_id: Optional[str] = None) -> Iterator[str]:
    """Scope an ID to a block; the previous one is restored on exit."""
    corr_id = corr_id or new_correlation_id()
    token = _current.set(corr_id)
    try:
        yield corr_id
    finally:
        _current.reset(token)
