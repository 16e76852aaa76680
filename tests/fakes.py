# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field

from tickbox.errors import NotFound
from tickbox.tasks.task_models import Priority, Step, Task, TaskDone, TaskStatus

# 2024-01-15 12:00:00 UTC
DEFAULT_NOW = 1_705_320_000.0


class FakeClock:
    """Deterministic clock: time only moves when a test says so."""

    def __init__(self, now: float = DEFAULT_NOW) -> None:
        self._now = now

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


@dataclass(slots=True)
class FakeTaskRepo:
    """
    In-memory TaskReader used for reporting unit tests.

    Avoids SQLite so the tests are purely about filtering, ordering of rows,
    column toggles and the count summary.
    """

    tasks: list[Task] = field(default_factory=list)
    labels: dict[int, list[str]] = field(default_factory=dict)
    refs: dict[int, str] = field(default_factory=dict)
    steps: dict[int, list[Step]] = field(default_factory=dict)

    def add(
        self,
        task_id: int,
        description: str,
        *,
        priority: Priority = Priority.NORMAL,
        status: TaskStatus = TaskStatus.TODO,
        labels: list[str] | None = None,
        completion_date: float | None = None,
        story_points: int = 0,
    ) -> Task:
        if completion_date is not None:
            status = TaskStatus.DONE
        t = Task(
            id=task_id,
            created_at=0.0,
            description=description,
            priority=priority,
            status=status,
            story_points=story_points,
            completion_date=completion_date,
        )
        self.tasks.append(t)
        self.labels[task_id] = list(labels or [])
        return t

    def read_open_tasks(self) -> list[Task]:
        open_tasks = [t for t in self.tasks if t.completion_date is None]
        return sorted(open_tasks, key=lambda t: (t.priority.rank, t.id))

    def read_done_tasks(self) -> list[TaskDone]:
        done = [t for t in self.tasks if t.completion_date is not None]
        done.sort(key=lambda t: (t.completion_date, t.id))
        return [
            TaskDone(
                id=t.id,
                description=t.description,
                priority=t.priority,
                completion_date=t.completion_date,
                story_points=t.story_points,
            )
            for t in done
        ]

    def get_task(self, task_id: int) -> Task:
        for t in self.tasks:
            if t.id == task_id:
                return t
        raise NotFound(f"task {task_id} not found")

    def labels_of(self, task_id: int) -> list[str]:
        return list(self.labels.get(task_id, []))

    def current_reference(self, task_id: int) -> str:
        return self.refs.get(task_id, "")

    def get_open_steps(self, task_id: int) -> list[Step]:
        return [s for s in self.steps.get(task_id, []) if s.completion_date is None]
