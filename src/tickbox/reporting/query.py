# src/tickbox/reporting/query.py

from __future__ import annotations

"""
Query & reporting engine.

Every view (all, short, backlog, work, done, single task) is one `ShowParams`
run through `build_report`. The result is a renderer-agnostic `Report`: a title
row reflecting the active column toggles, ordered row tuples, and an optional
per-status count table.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import TypeVar

from ..core.ports import TaskReader
from ..errors import NotFound
from ..tasks.task_models import LABEL_MAX_LEN, Priority, Task, TaskDone, TaskStatus, bound_text

logger = logging.getLogger(__name__)

_HOUR = 3600.0
_DAY = 24 * _HOUR

TaskLike = TypeVar("TaskLike", Task, TaskDone)


class TimeWindow(StrEnum):
    """Bound on time-since-completion for the done report."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    WEEK = "week"
    MONTH = "month"

    @property
    def seconds(self) -> float:
        return _WINDOW_SECONDS[self]

    @classmethod
    def parse(cls, raw: str | TimeWindow) -> TimeWindow:
        if isinstance(raw, TimeWindow):
            return raw
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise NotFound(f"unknown time window {raw!r}", metadata={"window": raw}) from None


# Month is four weeks, not a calendar month.
_WINDOW_SECONDS = {
    TimeWindow.TODAY: 1 * _DAY,
    TimeWindow.YESTERDAY: 2 * _DAY,
    TimeWindow.WEEK: 7 * _DAY,
    TimeWindow.MONTH: 28 * _DAY,
}

VIEW_STATUS = {
    "all": "",
    "short": "",
    "backlog": TaskStatus.TODO.value,
    "work": TaskStatus.IN_PROGRESS.value,
}


@dataclass(frozen=True, slots=True)
class ShowParams:
    labels: tuple[str, ...] = ()
    status: str = ""
    window: TimeWindow | None = None
    story_points: bool = False
    reference: bool = False
    steps: bool = False
    # short view: priority high or better, or already in progress
    short: bool = False

    def merge(self, other: ShowParams) -> ShowParams:
        """Combine group-level and view-level options: flags OR'd, labels concatenated."""
        labels = tuple(dict.fromkeys(self.labels + other.labels))
        return replace(
            self,
            labels=labels,
            story_points=self.story_points or other.story_points,
            reference=self.reference or other.reference,
            steps=self.steps or other.steps,
        )

    @classmethod
    def for_view(
        cls, view: str, base: ShowParams | None = None, *, window: TimeWindow | None = None
    ) -> ShowParams:
        base = base or cls()
        if view == "done":
            return replace(base, status="", window=window or TimeWindow.TODAY, short=False)
        if view not in VIEW_STATUS:
            raise NotFound(f"unknown view {view!r}", metadata={"view": view})
        return replace(base, status=VIEW_STATUS[view], window=None, short=view == "short")


@dataclass(frozen=True, slots=True)
class Report:
    view: str
    title: tuple[str, ...]
    rows: list[tuple[str, ...]] = field(default_factory=list)
    counts: dict[TaskStatus, int] | None = None

    @property
    def task_count(self) -> int:
        return sum(1 for r in self.rows if r[0])


# ---- filters ----


def normalize_labels(labels: Iterable[str]) -> tuple[str, ...]:
    """Filter labels cleaned the same way attached labels are; empties dropped."""
    clean = (bound_text(lbl, LABEL_MAX_LEN, strip_leading=True) for lbl in labels)
    return tuple(dict.fromkeys(lbl for lbl in clean if lbl))


def labels_match(required: Iterable[str], task_labels: Iterable[str]) -> bool:
    """AND semantics, exact case-sensitive match; no required labels always passes."""
    have = set(task_labels)
    return all(lbl in have for lbl in required)


def filter_by_labels(
    tasks: Iterable[TaskLike],
    required: Sequence[str],
    labels_of: Callable[[int], Sequence[str]],
) -> list[TaskLike]:
    if not required:
        return list(tasks)
    return [t for t in tasks if labels_match(required, labels_of(t.id))]


def filter_by_status(tasks: Iterable[Task], status: str) -> list[Task]:
    """Empty status means no filter."""
    if not status:
        return list(tasks)
    wanted = TaskStatus.parse(status)
    return [t for t in tasks if t.status is wanted]


def filter_short(tasks: Iterable[Task]) -> list[Task]:
    return [
        t
        for t in tasks
        if t.priority.rank <= Priority.HIGH.rank or t.status is TaskStatus.IN_PROGRESS
    ]


def time_window_filter(
    done_tasks: Iterable[TaskDone], window: TimeWindow, now: float
) -> list[TaskDone]:
    """Keep tasks completed strictly less than `window` ago."""
    bound = window.seconds
    return [t for t in done_tasks if now - t.completion_date < bound]


def aggregate_counts(
    tasks: Sequence[Task | TaskDone], status_filter: str = ""
) -> dict[TaskStatus, int] | None:
    """
    Per-status counts for the trailing summary table.

    - status filter applied: just that status's count
    - otherwise: canonical-order breakdown of the statuses present, but only when
      more than one task remains (a one-row answer gets no summary)
    """
    if status_filter:
        wanted = TaskStatus.parse(status_filter)
        return {wanted: sum(1 for t in tasks if t.status is wanted)}
    if len(tasks) <= 1:
        return None
    counts = {s: 0 for s in TaskStatus}
    for t in tasks:
        counts[t.status] += 1
    return {s: n for s, n in counts.items() if n}


# ---- row construction ----


def _fmt_ts(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def _title(params: ShowParams) -> tuple[str, ...]:
    cols = ["id", "priority", "status"]
    if params.window is not None:
        cols.append("completed")
    cols += ["labels", "description"]
    if params.story_points:
        cols.append("story points")
    if params.reference:
        cols.append("reference")
    return tuple(cols)


def _rows_for(
    repo: TaskReader,
    task: Task | TaskDone,
    labels: Sequence[str],
    params: ShowParams,
) -> list[tuple[str, ...]]:
    cells = [str(task.id), task.priority.value, task.status.value]
    if params.window is not None:
        done_at = task.completion_date
        cells.append(_fmt_ts(done_at) if done_at is not None else "")
    cells.append("\n".join(labels))
    descr_col = len(cells)
    cells.append(task.description)
    if params.story_points:
        cells.append(str(task.story_points))
    if params.reference:
        cells.append(repo.current_reference(task.id))
    rows = [tuple(cells)]

    if params.steps:
        width = len(cells)
        for step in repo.get_open_steps(task.id):
            sub = [""] * width
            sub[descr_col] = f"  {step.step_id}: {step.description}"
            rows.append(tuple(sub))
    return rows


def build_report(repo: TaskReader, params: ShowParams, now: float, *, view: str = "") -> Report:
    label_cache: dict[int, list[str]] = {}

    def labels_of(task_id: int) -> list[str]:
        if task_id not in label_cache:
            label_cache[task_id] = repo.labels_of(task_id)
        return label_cache[task_id]

    tasks: list[Task] | list[TaskDone]
    if params.window is not None:
        tasks = time_window_filter(repo.read_done_tasks(), params.window, now)
    else:
        tasks = filter_by_status(repo.read_open_tasks(), params.status)
        if params.short:
            tasks = filter_short(tasks)
    tasks = filter_by_labels(tasks, normalize_labels(params.labels), labels_of)

    rows: list[tuple[str, ...]] = []
    for task in tasks:
        rows.extend(_rows_for(repo, task, labels_of(task.id), params))

    status_filter = params.status if params.window is None else ""
    logger.debug("Report view=%s params=%s tasks=%d", view, params, len(tasks))
    return Report(
        view=view or ("done" if params.window is not None else "all"),
        title=_title(params),
        rows=rows,
        counts=aggregate_counts(tasks, status_filter),
    )


def build_task_detail(
    repo: TaskReader, task_id: int, *, labels: Iterable[str] = ()
) -> Report:
    """One task with every column toggle on; no rows when it lacks a required label."""
    task = repo.get_task(task_id)
    params = ShowParams(story_points=True, reference=True, steps=True)
    task_labels = repo.labels_of(task_id)
    rows: list[tuple[str, ...]] = []
    if labels_match(normalize_labels(labels), task_labels):
        rows = _rows_for(repo, task, task_labels, params)
    return Report(
        view=f"task {task_id}",
        title=_title(params),
        rows=rows,
        counts=None,
    )
