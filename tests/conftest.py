# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tickbox.core.state import AppState
from tickbox.tasks.lifecycle import TaskLifecycle
from tickbox.tasks.task_store import TaskStore

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the user's environment and .env file.
    """
    return SimpleNamespace(
        app_name="tickbox",
        log_level="WARNING",
        log_to_file=False,
        data_dir=tmp_path,
        db_path=tmp_path / "tickbox.db",
        default_window="today",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    """Initialized store in a tmp file (real SQLite, its behavior is under test)."""
    s = TaskStore(settings.db_path)
    s.initialize()
    return s


@pytest.fixture()
def lifecycle(store: TaskStore, clock: FakeClock) -> TaskLifecycle:
    return TaskLifecycle(store, clock)


@pytest.fixture()
def state(settings: SimpleNamespace, clock: FakeClock, store: TaskStore, lifecycle) -> AppState:
    return AppState(settings=settings, clock=clock, task_store=store, lifecycle=lifecycle)
