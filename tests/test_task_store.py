# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from tickbox.errors import AlreadyInitializedMismatch, InvalidTransition, NotFound, StoreUnavailable
from tickbox.tasks.task_models import DESCR_MAX_LEN, LABEL_MAX_LEN, Priority, TaskStatus
from tickbox.tasks.task_store import TaskStore

NOW = 1_700_000_000.0


def test_initialize_seeds_lookup_tables(store: TaskStore) -> None:
    assert store.is_initialized()

    with sqlite3.connect(store.db_path) as conn:
        prio = conn.execute("SELECT id, descr FROM priority ORDER BY id").fetchall()
        stat = conn.execute("SELECT id, descr FROM status ORDER BY id").fetchall()

    assert prio == [(1, "urgent"), (2, "high"), (3, "normal"), (4, "low"), (5, "miserable")]
    assert [d for _, d in stat] == ["todo", "in_progress", "done", "block"]


def test_second_non_destructive_init_is_refused(store: TaskStore) -> None:
    task_id = store.create_task("keep me", now_ts=NOW)

    with pytest.raises(AlreadyInitializedMismatch):
        store.initialize()

    # nothing was lost
    assert store.get_task(task_id).description == "keep me"


def test_partial_schema_is_refused_without_destructive(tmp_path: Path) -> None:
    db = tmp_path / "partial.db"
    with sqlite3.connect(db) as conn:
        conn.execute("CREATE TABLE refs (id INTEGER PRIMARY KEY, descr TEXT)")

    store = TaskStore(db)
    assert not store.is_initialized()
    with pytest.raises(AlreadyInitializedMismatch):
        store.initialize()

    store.initialize(destructive=True)
    assert store.is_initialized()


def test_destructive_init_resets_everything(store: TaskStore) -> None:
    store.create_task("gone soon", now_ts=NOW)
    store.initialize(destructive=True)

    assert store.is_initialized()
    assert store.count_tasks() == 0
    # ids restart from the beginning after a reset
    assert store.create_task("fresh", now_ts=NOW) == 1


def test_uninitialized_store_reports_not_found(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "empty.db")

    assert not store.is_initialized()
    with pytest.raises(NotFound):
        store.create_task("nowhere to go", now_ts=NOW)
    with pytest.raises(NotFound):
        store.read_open_tasks()


def test_garbage_file_is_unavailable(tmp_path: Path) -> None:
    db = tmp_path / "junk.db"
    db.write_bytes(b"this is definitely not sqlite" * 100)

    store = TaskStore(db)
    with pytest.raises(StoreUnavailable):
        store.initialize()


def test_create_task_defaults(store: TaskStore) -> None:
    task_id = store.create_task("write the report", now_ts=NOW)
    task = store.get_task(task_id)

    assert task.description == "write the report"
    assert task.priority is Priority.NORMAL
    assert task.status is TaskStatus.TODO
    assert task.story_points == 0
    assert task.completion_date is None
    assert task.created_at == NOW
    assert store.current_reference(task_id) == ""
    assert store.labels_of(task_id) == []


def test_description_is_trimmed_and_truncated(store: TaskStore) -> None:
    task_id = store.create_task("x" * 200 + "   ", now_ts=NOW)
    assert store.get_task(task_id).description == "x" * DESCR_MAX_LEN

    store.update_description(task_id, "  indented stays   ")
    assert store.get_task(task_id).description == "  indented stays"


def test_open_tasks_ordered_by_priority_then_id(store: TaskStore) -> None:
    a = store.create_task("a", now_ts=NOW)
    b = store.create_task("b", now_ts=NOW)
    c = store.create_task("c", now_ts=NOW)
    store.update_priority(c, Priority.URGENT)
    store.update_priority(a, Priority.LOW)

    assert [t.id for t in store.read_open_tasks()] == [c, b, a]


def test_update_missing_task_is_not_found(store: TaskStore) -> None:
    with pytest.raises(NotFound):
        store.update_description(42, "nope")
    with pytest.raises(NotFound):
        store.update_priority(42, Priority.HIGH)
    with pytest.raises(NotFound):
        store.update_status(42, TaskStatus.BLOCK)
    with pytest.raises(NotFound):
        store.delete_task(42)


def test_update_status_refuses_done(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)
    with pytest.raises(InvalidTransition):
        store.update_status(task_id, TaskStatus.DONE)
    assert store.get_task(task_id).status is TaskStatus.TODO


def test_mark_done_is_a_bundle(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)
    store.add_step(task_id, "one")
    store.add_step(task_id, "two")

    closed = store.mark_done(task_id, now_ts=NOW + 60)

    assert closed == 2
    task = store.get_task(task_id)
    assert task.status is TaskStatus.DONE
    assert task.completion_date == NOW + 60
    assert store.get_open_steps(task_id) == []
    assert store.read_open_tasks() == []
    [done] = store.read_done_tasks()
    assert done.id == task_id
    assert done.completion_date == NOW + 60

    with pytest.raises(InvalidTransition):
        store.mark_done(task_id, now_ts=NOW + 120)
    with pytest.raises(InvalidTransition):
        store.update_status(task_id, TaskStatus.TODO)


def test_story_points_must_be_non_negative(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)
    store.update_story_points(task_id, 5)
    assert store.get_task(task_id).story_points == 5

    with pytest.raises(ValueError):
        store.update_story_points(task_id, -1)


def test_labels_are_idempotent_and_bounded(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)
    store.attach_labels(task_id, ["work", "  home  ", "work", "", "y" * 50])
    store.attach_labels(task_id, ["work"])

    assert store.labels_of(task_id) == ["work", "home", "y" * LABEL_MAX_LEN]


def test_labels_on_missing_task(store: TaskStore) -> None:
    with pytest.raises(NotFound):
        store.attach_labels(99, ["x"])
    assert store.labels_of(99) == []


def test_reference_rows_are_append_only(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)
    first = store.set_reference(task_id, "https://example.org/1")
    second = store.set_reference(task_id, "https://example.org/2")

    assert second != first
    assert store.current_reference(task_id) == "https://example.org/2"
    assert store.get_task(task_id).refs_id == second

    with sqlite3.connect(store.db_path) as conn:
        (n,) = conn.execute("SELECT COUNT(*) FROM refs").fetchone()
    assert n == 2


def test_reference_on_missing_task_leaves_no_row(store: TaskStore) -> None:
    with pytest.raises(NotFound):
        store.set_reference(7, "dangling")
    with pytest.raises(NotFound):
        store.current_reference(7)

    with sqlite3.connect(store.db_path) as conn:
        (n,) = conn.execute("SELECT COUNT(*) FROM refs").fetchone()
    assert n == 0


def test_step_numbering_starts_at_zero(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)

    assert store.add_step(task_id, "first") == 0
    assert store.add_step(task_id, "second") == 1
    assert [s.description for s in store.get_steps(task_id)] == ["first", "second"]

    with pytest.raises(NotFound):
        store.add_step(999, "orphan")


def test_complete_step_keeps_first_timestamp(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)
    step_id = store.add_step(task_id, "s")

    store.complete_step(task_id, step_id, now_ts=NOW + 1)
    store.complete_step(task_id, step_id, now_ts=NOW + 2)

    assert store.get_step(task_id, step_id).completion_date == NOW + 1
    assert store.get_open_steps(task_id) == []

    with pytest.raises(NotFound):
        store.complete_step(task_id, 5, now_ts=NOW)


def test_delete_step(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)
    store.add_step(task_id, "a")
    store.add_step(task_id, "b")

    store.delete_step(task_id, 0)
    assert [s.step_id for s in store.get_steps(task_id)] == [1]

    with pytest.raises(NotFound):
        store.delete_step(task_id, 0)


def test_transaction_rolls_back_on_error(store: TaskStore) -> None:
    task_id = store.create_task("t", now_ts=NOW)

    with pytest.raises(NotFound):
        with store.transaction() as conn:
            store.update_description(task_id, "changed", conn=conn)
            store.update_priority(12345, Priority.URGENT, conn=conn)

    assert store.get_task(task_id).description == "t"
