# src/tickbox/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.lifecycle import TaskLifecycle
from ..tasks.task_store import TaskStore
from .ports import Clock


@dataclass
class AppState:
    # Settings are kept on the state so commands can read paths/defaults.
    settings: object

    clock: Clock
    task_store: TaskStore
    lifecycle: TaskLifecycle
