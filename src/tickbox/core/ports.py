# src/tickbox/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The lifecycle and reporting layers depend on Protocols instead of the concrete
SQLite store and the system clock. This keeps tests deterministic: the reporting
engine can run against an in-memory repo and a fake clock.
"""

from typing import Protocol

from ..tasks.task_models import Step, Task, TaskDone


class Clock(Protocol):
    """Source of "now" as POSIX seconds."""

    def now(self) -> float: ...


class TaskReader(Protocol):
    """Read side of the store, as consumed by the reporting engine."""

    def read_open_tasks(self) -> list[Task]: ...
    def read_done_tasks(self) -> list[TaskDone]: ...
    def get_task(self, task_id: int) -> Task: ...
    def labels_of(self, task_id: int) -> list[str]: ...
    def current_reference(self, task_id: int) -> str: ...
    def get_open_steps(self, task_id: int) -> list[Step]: ...
