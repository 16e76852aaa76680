# src/tickbox/errors.py

from __future__ import annotations

from typing import Any


class StoreError(RuntimeError):
    """
    Base error for the task store and lifecycle layers.

    Carries metadata for structured logging. None of these errors are retried:
    each one ends the invoking command.
    """

    category: str = "store"

    def __init__(self, message: str, *, metadata: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.metadata = metadata or {}


class NotFound(StoreError):
    """A targeted update/delete matched zero rows, or a priority/status name is unknown."""

    category = "not_found"


class AlreadyInitializedMismatch(StoreError):
    """Schema state is inconsistent with the requested init mode."""

    category = "init"


class StoreUnavailable(StoreError):
    """The database file could not be opened."""

    category = "unavailable"


class InvalidTransition(StoreError):
    """Status edit naming the terminal state, or any status change on a done task."""

    category = "transition"


class PartialCreationError(StoreError):
    """
    Task row was created but one of the optional follow-up mutations failed.

    The task is left in its partially-enriched state; `task_id` tells the caller
    which row exists and `field` which enrichment step failed.
    """

    category = "partial_creation"

    def __init__(self, task_id: int, field: str, cause: Exception) -> None:
        super().__init__(
            f"task {task_id} was created but setting {field} failed: {cause}",
            metadata={"task_id": task_id, "field": field},
        )
        self.task_id = task_id
        self.field = field
        self.cause = cause
