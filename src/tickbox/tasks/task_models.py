# src/tickbox/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ..errors import NotFound

DESCR_MAX_LEN = 128
LABEL_MAX_LEN = 32
REFERENCE_MAX_LEN = 1024


def bound_text(text: str, max_len: int, *, strip_leading: bool = False) -> str:
    """Trim trailing whitespace (and leading, if asked) and truncate to max_len chars."""
    out = text.strip() if strip_leading else text.rstrip()
    return out[:max_len]


class Priority(StrEnum):
    """
    Task priority, most urgent first.

    Declaration order is the rank (urgent=1 .. miserable=5) and matches the
    seed order of the `priority` relation, so rank doubles as the row id.
    """

    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"
    MISERABLE = "miserable"

    @property
    def rank(self) -> int:
        return _PRIORITY_ORDER.index(self) + 1

    @classmethod
    def from_rank(cls, rank: int) -> Priority:
        if not 1 <= rank <= len(_PRIORITY_ORDER):
            raise NotFound(f"no priority with rank {rank}", metadata={"rank": rank})
        return _PRIORITY_ORDER[rank - 1]

    @classmethod
    def parse(cls, raw: str | Priority) -> Priority:
        if isinstance(raw, Priority):
            return raw
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise NotFound(f"unknown priority {raw!r}", metadata={"priority": raw}) from None

    def increased(self) -> Priority:
        """One rank toward urgent; urgent stays urgent."""
        return Priority.from_rank(max(1, self.rank - 1))


_PRIORITY_ORDER: tuple[Priority, ...] = tuple(Priority)


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    - todo: initial
    - in_progress / block: reachable from each other and from todo
    - done: terminal, only set together with the completion timestamp
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCK = "block"

    @property
    def db_id(self) -> int:
        return _STATUS_ORDER.index(self) + 1

    @classmethod
    def from_db(cls, raw: int) -> TaskStatus:
        if not 1 <= raw <= len(_STATUS_ORDER):
            raise NotFound(f"no status with id {raw}", metadata={"status_id": raw})
        return _STATUS_ORDER[raw - 1]

    @classmethod
    def parse(cls, raw: str | TaskStatus) -> TaskStatus:
        if isinstance(raw, TaskStatus):
            return raw
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise NotFound(f"unknown status {raw!r}", metadata={"status": raw}) from None


_STATUS_ORDER: tuple[TaskStatus, ...] = tuple(TaskStatus)


@dataclass(slots=True)
class Task:
    id: int
    created_at: float
    description: str
    priority: Priority
    status: TaskStatus
    refs_id: int | None = None
    story_points: int = 0
    completion_date: float | None = None


@dataclass(slots=True)
class TaskDone:
    """Completed-task read model used by the done report."""

    id: int
    description: str
    priority: Priority
    completion_date: float
    story_points: int = 0

    @property
    def status(self) -> TaskStatus:
        return TaskStatus.DONE


@dataclass(slots=True)
class Step:
    task_id: int
    step_id: int
    description: str
    completion_date: float | None = None
