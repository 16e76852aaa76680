# src/tickbox/tasks/lifecycle.py

from __future__ import annotations

"""
Task lifecycle.

State machine over (status, completion_date):
- start:    todo | in_progress | block -> in_progress
- block:    todo | in_progress | block -> block
- complete: todo | in_progress | block -> done (terminal)

`done` is only reachable through `complete`, which stamps the completion date,
sets the status and closes every open step in one transaction. Step cleanup on
delete happens here, not in the store.
"""

import logging
from collections.abc import Callable, Iterable

from ..core.ports import Clock
from ..errors import InvalidTransition, PartialCreationError, StoreError
from .task_models import Priority, Task, TaskStatus
from .task_store import TaskStore

logger = logging.getLogger(__name__)

START_STEP_ID = 0


class TaskLifecycle:
    def __init__(self, store: TaskStore, clock: Clock) -> None:
        self.store = store
        self.clock = clock

    # ---- creation ----

    def create(
        self,
        description: str,
        *,
        labels: Iterable[str] = (),
        priority: Priority | str | None = None,
        story_points: int | None = None,
        reference: str | None = None,
    ) -> int:
        """
        Create a task, then apply each optional attribute as its own mutation.

        Enrichment is best-effort: if a follow-up fails, the row (and any earlier
        follow-ups) stay in place and PartialCreationError names the failed field.
        """
        task_id = self.store.create_task(description, now_ts=self.clock.now())
        logger.info("Created task %s", task_id)

        labels = list(labels)
        if labels:
            self._enrich(task_id, "labels", self.store.attach_labels, labels)
        if priority is not None:
            self._enrich(task_id, "priority", self._set_priority, priority)
        if story_points is not None:
            self._enrich(task_id, "story_points", self.store.update_story_points, story_points)
        if reference is not None:
            self._enrich(task_id, "reference", self.store.set_reference, reference)
        return task_id

    def _enrich(self, task_id: int, field: str, apply: Callable[..., object], value: object) -> None:
        try:
            apply(task_id, value)
        except (StoreError, ValueError) as exc:
            logger.error("Task %s created but setting %s failed: %s", task_id, field, exc)
            raise PartialCreationError(task_id, field, exc) from exc
        logger.debug("Task %s %s set", task_id, field)

    def _set_priority(self, task_id: int, priority: Priority | str) -> None:
        self.store.update_priority(task_id, Priority.parse(priority))

    # ---- transitions ----

    def _require_open(self, task_id: int, action: str) -> Task:
        task = self.store.get_task(task_id)
        if task.status is TaskStatus.DONE:
            raise InvalidTransition(
                f"cannot {action} task {task_id}: it is already done",
                metadata={"task_id": task_id, "action": action},
            )
        return task

    def start(self, task_id: int) -> None:
        """Move to in_progress; an open step 0 counts as satisfied by starting."""
        self._require_open(task_id, "start")
        with self.store.transaction() as conn:
            self.store.update_status(task_id, TaskStatus.IN_PROGRESS, conn=conn)
            open_steps = {s.step_id for s in self.store.get_open_steps(task_id, conn=conn)}
            if START_STEP_ID in open_steps:
                self.store.complete_step(task_id, START_STEP_ID, now_ts=self.clock.now(), conn=conn)
                logger.debug("Task %s start step closed", task_id)
        logger.info("Started task %s", task_id)

    def block(self, task_id: int) -> None:
        self._require_open(task_id, "block")
        self.store.update_status(task_id, TaskStatus.BLOCK)
        logger.info("Blocked task %s", task_id)

    def complete(self, task_id: int) -> None:
        """Atomically: completion timestamp + done status + every open step closed."""
        self._require_open(task_id, "complete")
        closed = self.store.mark_done(task_id, now_ts=self.clock.now())
        logger.info("Completed task %s (%d open steps closed)", task_id, closed)

    def edit_status(self, task_id: int, status: TaskStatus | str) -> None:
        """
        Raw status edit. `done` is refused (use complete), and a done task
        cannot be edited at all.
        """
        target = TaskStatus.parse(status)
        if target is TaskStatus.DONE:
            raise InvalidTransition(
                "a task can only become done through the complete operation",
                metadata={"task_id": task_id},
            )
        self._require_open(task_id, "edit")
        self.store.update_status(task_id, target)
        logger.info("Task %s status -> %s", task_id, target.value)

    def edit(
        self,
        task_id: int,
        *,
        description: str | None = None,
        priority: Priority | str | None = None,
        story_points: int | None = None,
        reference: str | None = None,
        status: TaskStatus | str | None = None,
    ) -> None:
        if all(v is None for v in (description, priority, story_points, reference, status)):
            raise ValueError("at least one attribute to edit is required")
        if status is not None and TaskStatus.parse(status) is TaskStatus.DONE:
            raise InvalidTransition(
                "a task can only become done through the complete operation",
                metadata={"task_id": task_id},
            )
        self._require_open(task_id, "edit")

        if description is not None:
            self.store.update_description(task_id, description)
        if priority is not None:
            self._set_priority(task_id, priority)
        if story_points is not None:
            self.store.update_story_points(task_id, story_points)
        if reference is not None:
            self.store.set_reference(task_id, reference)
        if status is not None:
            self.edit_status(task_id, status)
        logger.info("Edited task %s", task_id)

    def increase_priority(self, task_id: int) -> Priority:
        """One rank toward urgent; already-urgent tasks are left alone."""
        task = self.store.get_task(task_id)
        raised = task.priority.increased()
        if raised is not task.priority:
            self.store.update_priority(task_id, raised)
            logger.info("Task %s priority %s -> %s", task_id, task.priority.value, raised.value)
        else:
            logger.info("Task %s already at %s", task_id, raised.value)
        return raised

    def delete(self, task_id: int) -> None:
        """Steps first, then labels and the row, all in one transaction."""
        with self.store.transaction() as conn:
            steps = self.store.delete_all_steps(task_id, conn=conn)
            self.store.delete_task(task_id, conn=conn)
        logger.info("Deleted task %s (%d steps)", task_id, steps)

    # ---- steps ----

    def add_step(self, task_id: int, description: str) -> int:
        self._require_open(task_id, "add a step to")
        step_id = self.store.add_step(task_id, description)
        logger.info("Task %s: added step %s", task_id, step_id)
        return step_id

    def complete_step(self, task_id: int, step_id: int) -> None:
        self.store.complete_step(task_id, step_id, now_ts=self.clock.now())
        logger.info("Task %s: step %s done", task_id, step_id)

    def delete_step(self, task_id: int, step_id: int) -> None:
        self.store.delete_step(task_id, step_id)
        logger.info("Task %s: step %s deleted", task_id, step_id)
