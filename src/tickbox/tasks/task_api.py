# src/tickbox/tasks/task_api.py

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.state import AppState

logger = logging.getLogger(__name__)


def attach_labels(state: AppState, task_id: int, labels: Iterable[str]) -> list[str]:
    """
    Attach labels to an existing task and return its full label list.

    Attaching a label twice is a no-op, never an error.
    """
    wanted = [lbl for lbl in labels if lbl and lbl.strip()]
    if not wanted:
        raise ValueError("at least one label is required")
    state.task_store.attach_labels(task_id, wanted)
    logger.info("Task %s: attached labels %s", task_id, wanted)
    return state.task_store.labels_of(task_id)


def labels_of(state: AppState, task_id: int) -> list[str]:
    """Labels in attachment order (empty for unlabelled or unknown tasks)."""
    return state.task_store.labels_of(task_id)


def set_reference(state: AppState, task_id: int, text: str) -> int:
    """Point the task at a new reference row; the previous row is kept."""
    ref_id = state.task_store.set_reference(task_id, text)
    logger.info("Task %s: reference set (refs_id=%s)", task_id, ref_id)
    return ref_id


def current_reference(state: AppState, task_id: int) -> str:
    return state.task_store.current_reference(task_id)
