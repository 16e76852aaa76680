# src/tickbox/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local data directory exists,
- wires the SQLite store, clock and lifecycle into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import SystemClock
from ..core.ports import Clock
from ..core.state import AppState
from ..errors import StoreUnavailable
from ..tasks.lifecycle import TaskLifecycle
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StoreUnavailable(
            f"cannot create data directory for {settings.db_path}: {exc}",
            metadata={"db_path": str(settings.db_path)},
        ) from exc


def create_initial_state(*, settings=None, clock: Clock | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Settings and clock are injectable so tests can point at a tmp database and
    control completion timestamps. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()
    if clock is None:
        clock = SystemClock()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.db_path)
    state = AppState(
        settings=settings,
        clock=clock,
        task_store=store,
        lifecycle=TaskLifecycle(store, clock),
    )
    logger.debug("State ready db=%s", settings.db_path)
    return state
