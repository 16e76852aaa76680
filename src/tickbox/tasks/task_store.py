# src/tickbox/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from pathlib import Path

from ..errors import (
    AlreadyInitializedMismatch,
    InvalidTransition,
    NotFound,
    StoreError,
    StoreUnavailable,
)
from .task_models import (
    DESCR_MAX_LEN,
    LABEL_MAX_LEN,
    REFERENCE_MAX_LEN,
    Priority,
    Step,
    Task,
    TaskDone,
    TaskStatus,
    bound_text,
)

logger = logging.getLogger(__name__)

_TABLES = ("tasks", "steps", "priority", "status", "todo_label", "refs")

_SCHEMA = (
    """
    CREATE TABLE tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        creation_date REAL NOT NULL,
        descr TEXT NOT NULL,
        priority_id INTEGER NOT NULL,
        status_id INTEGER NOT NULL,
        refs_id INTEGER,
        story_points INTEGER NOT NULL DEFAULT 0,
        completion_date REAL
    )
    """,
    """
    CREATE TABLE steps (
        todo_id INTEGER NOT NULL,
        steps_num INTEGER NOT NULL,
        descr TEXT NOT NULL,
        completion_date REAL,
        PRIMARY KEY (todo_id, steps_num)
    )
    """,
    """
    CREATE TABLE priority (
        id INTEGER PRIMARY KEY ASC,
        descr TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE status (
        id INTEGER PRIMARY KEY ASC,
        descr TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE todo_label (
        todo_id INTEGER NOT NULL,
        label TEXT NOT NULL,
        PRIMARY KEY (todo_id, label)
    )
    """,
    """
    CREATE TABLE refs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        descr TEXT NOT NULL
    )
    """,
    "CREATE INDEX idx_tasks_open ON tasks(completion_date, priority_id)",
)


class TaskStore:
    """
    SQLite task store.

    Owns the persistent relations (tasks, steps, priority, status, labels, refs)
    and exposes initialization plus raw CRUD primitives. Lifecycle rules live in
    TaskLifecycle; the store only guarantees that `done` status and the completion
    timestamp are always written together.

    Connections:
    - each method opens its own short-lived connection,
    - `transaction()` yields one connection that several primitives can share via
      their `conn=` keyword, committed on success and rolled back on any error.

    Cross-process safety is SQLite's own file locking; nothing is retried here.
    """

    def __init__(self, db_path: str | Path = "tickbox.db") -> None:
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailable(
                f"cannot create directory for {self._db_path}: {exc}",
                metadata={"db_path": str(self._db_path)},
            ) from exc
        try:
            total = self.count_tasks()
        except StoreError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        except sqlite3.Error as exc:
            raise StoreUnavailable(
                f"cannot open {self._db_path}: {exc}", metadata={"db_path": str(self._db_path)}
            ) from exc
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _translate(self, exc: sqlite3.Error) -> StoreError:
        msg = str(exc)
        meta = {"db_path": str(self._db_path)}
        if "file is not a database" in msg or "unable to open" in msg:
            return StoreUnavailable(f"cannot use {self._db_path}: {msg}", metadata=meta)
        if "no such table" in msg:
            return NotFound(f"store {self._db_path} is not initialized ({msg})", metadata=meta)
        return StoreError(f"sqlite error on {self._db_path}: {msg}", metadata=meta)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise self._translate(exc) from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextlib.contextmanager
    def _use(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self.transaction() as own:
            yield own

    @staticmethod
    def _existing_tables(conn: sqlite3.Connection) -> set[str]:
        cur = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        return {row["name"] for row in cur.fetchall()} & set(_TABLES)

    @staticmethod
    def _seeds_match(conn: sqlite3.Connection) -> bool:
        prio = [r["descr"] for r in conn.execute("SELECT descr FROM priority ORDER BY id")]
        stat = [r["descr"] for r in conn.execute("SELECT descr FROM status ORDER BY id")]
        return prio == [p.value for p in Priority] and stat == [s.value for s in TaskStatus]

    @staticmethod
    def _require_task(conn: sqlite3.Connection, task_id: int) -> None:
        row = conn.execute("SELECT 1 FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        if row is None:
            raise NotFound(f"task {task_id} not found", metadata={"task_id": task_id})

    @staticmethod
    def _check_one(rowcount: int, task_id: int, what: str) -> None:
        if rowcount == 1:
            return
        raise NotFound(f"{what}: task {task_id} not found", metadata={"task_id": task_id})

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            created_at=float(row["creation_date"] or 0.0),
            description=str(row["descr"] or ""),
            priority=Priority.from_rank(int(row["priority_id"])),
            status=TaskStatus.from_db(int(row["status_id"])),
            refs_id=int(row["refs_id"]) if row["refs_id"] is not None else None,
            story_points=int(row["story_points"] or 0),
            completion_date=(
                float(row["completion_date"]) if row["completion_date"] is not None else None
            ),
        )

    @staticmethod
    def _row_to_step(row: sqlite3.Row) -> Step:
        return Step(
            task_id=int(row["todo_id"]),
            step_id=int(row["steps_num"]),
            description=str(row["descr"] or ""),
            completion_date=(
                float(row["completion_date"]) if row["completion_date"] is not None else None
            ),
        )

    # ---- schema ----

    def initialize(self, *, destructive: bool = False) -> None:
        """
        Create and seed all relations.

        destructive=True drops every relation first. A non-destructive init only
        runs against a store that has none of the relations yet; anything else
        raises AlreadyInitializedMismatch instead of silently keeping old data.
        """
        with self.transaction() as conn:
            existing = self._existing_tables(conn)
            if destructive:
                for table in _TABLES:
                    conn.execute(f"DROP TABLE IF EXISTS {table}")
                logger.warning("TaskStore dropped %d relations db=%s", len(existing), self._db_path)
            elif existing:
                state = "initialized" if existing == set(_TABLES) else "partially initialized"
                raise AlreadyInitializedMismatch(
                    f"store {self._db_path} is already {state}; use a destructive init to reset it",
                    metadata={"db_path": str(self._db_path), "tables": sorted(existing)},
                )

            for ddl in _SCHEMA:
                conn.execute(ddl)
            conn.executemany(
                "INSERT INTO priority (id, descr) VALUES (?, ?)",
                [(p.rank, p.value) for p in Priority],
            )
            conn.executemany(
                "INSERT INTO status (id, descr) VALUES (?, ?)",
                [(s.db_id, s.value) for s in TaskStatus],
            )
        logger.info("TaskStore initialized db=%s destructive=%s", self._db_path, destructive)

    def is_initialized(self) -> bool:
        with self.transaction() as conn:
            if self._existing_tables(conn) != set(_TABLES):
                return False
            return self._seeds_match(conn)

    # ---- tasks ----

    def count_tasks(self) -> int:
        with self.transaction() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def create_task(
        self, description: str, *, now_ts: float, conn: sqlite3.Connection | None = None
    ) -> int:
        descr = bound_text(description, DESCR_MAX_LEN)
        with self._use(conn) as c:
            for table, row_id, name in (
                ("priority", Priority.NORMAL.rank, Priority.NORMAL.value),
                ("status", TaskStatus.TODO.db_id, TaskStatus.TODO.value),
            ):
                row = c.execute(f"SELECT descr FROM {table} WHERE id = ?", (row_id,)).fetchone()
                if row is None or row["descr"] != name:
                    raise NotFound(
                        f"default {table} {name!r} is not seeded; initialize the store first",
                        metadata={"table": table},
                    )
            cur = c.execute(
                """
                INSERT INTO tasks (creation_date, descr, priority_id, status_id, story_points)
                VALUES (?, ?, ?, ?, 0)
                """,
                (float(now_ts), descr, Priority.NORMAL.rank, TaskStatus.TODO.db_id),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
        logger.debug("Task added id=%s descr=%r", task_id, descr)
        return task_id

    def get_task(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> Task:
        with self._use(conn) as c:
            row = c.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        if row is None:
            raise NotFound(f"task {task_id} not found", metadata={"task_id": task_id})
        return self._row_to_task(row)

    def read_open_tasks(self) -> list[Task]:
        """Open tasks, most urgent first; ties in insertion order."""
        with self.transaction() as conn:
            cur = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE completion_date IS NULL
                ORDER BY priority_id ASC, id ASC
                """
            )
            return [self._row_to_task(r) for r in cur.fetchall()]

    def read_done_tasks(self) -> list[TaskDone]:
        """Completed tasks, oldest completion first."""
        with self.transaction() as conn:
            cur = conn.execute(
                """
                SELECT id, descr, priority_id, completion_date, story_points
                FROM tasks
                WHERE completion_date IS NOT NULL
                ORDER BY completion_date ASC, id ASC
                """
            )
            return [
                TaskDone(
                    id=int(r["id"]),
                    description=str(r["descr"] or ""),
                    priority=Priority.from_rank(int(r["priority_id"])),
                    completion_date=float(r["completion_date"]),
                    story_points=int(r["story_points"] or 0),
                )
                for r in cur.fetchall()
            ]

    def update_description(
        self, task_id: int, description: str, *, conn: sqlite3.Connection | None = None
    ) -> None:
        descr = bound_text(description, DESCR_MAX_LEN)
        with self._use(conn) as c:
            cur = c.execute("UPDATE tasks SET descr = ? WHERE id = ?", (descr, int(task_id)))
            self._check_one(cur.rowcount, task_id, "update description")
        logger.debug("Task %s description=%r", task_id, descr)

    def update_priority(
        self, task_id: int, priority: Priority, *, conn: sqlite3.Connection | None = None
    ) -> None:
        with self._use(conn) as c:
            cur = c.execute(
                "UPDATE tasks SET priority_id = ? WHERE id = ?", (priority.rank, int(task_id))
            )
            self._check_one(cur.rowcount, task_id, "update priority")
        logger.debug("Task %s priority=%s", task_id, priority.value)

    def update_status(
        self, task_id: int, status: TaskStatus, *, conn: sqlite3.Connection | None = None
    ) -> None:
        """Set a non-terminal status on an open task (`done` goes through mark_done)."""
        if status is TaskStatus.DONE:
            raise InvalidTransition(
                "status 'done' can only be set by completing the task",
                metadata={"task_id": task_id},
            )
        with self._use(conn) as c:
            cur = c.execute(
                "UPDATE tasks SET status_id = ? WHERE id = ? AND completion_date IS NULL",
                (status.db_id, int(task_id)),
            )
            if cur.rowcount != 1:
                self._require_task(c, task_id)
                raise InvalidTransition(
                    f"task {task_id} is done; its status can no longer change",
                    metadata={"task_id": task_id},
                )
        logger.debug("Task %s status=%s", task_id, status.value)

    def update_story_points(
        self, task_id: int, story_points: int, *, conn: sqlite3.Connection | None = None
    ) -> None:
        if story_points < 0:
            raise ValueError("story points must be a non-negative integer")
        with self._use(conn) as c:
            cur = c.execute(
                "UPDATE tasks SET story_points = ? WHERE id = ?", (int(story_points), int(task_id))
            )
            self._check_one(cur.rowcount, task_id, "update story points")
        logger.debug("Task %s story_points=%s", task_id, story_points)

    def mark_done(self, task_id: int, *, now_ts: float, conn: sqlite3.Connection | None = None) -> int:
        """
        Completion bundle: timestamp + `done` status + every open step, in one transaction.

        Returns the number of steps that were completed along with the task.
        """
        with self._use(conn) as c:
            cur = c.execute(
                """
                UPDATE tasks
                SET completion_date = ?, status_id = ?
                WHERE id = ? AND completion_date IS NULL
                """,
                (float(now_ts), TaskStatus.DONE.db_id, int(task_id)),
            )
            if cur.rowcount != 1:
                self._require_task(c, task_id)
                raise InvalidTransition(
                    f"task {task_id} is already done", metadata={"task_id": task_id}
                )
            steps = self.complete_all_open_steps(task_id, now_ts=now_ts, conn=c)
        logger.debug("Task %s done at %s (steps closed=%s)", task_id, now_ts, steps)
        return steps

    def delete_task(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> None:
        """Remove the task row and its labels. Steps are the caller's responsibility."""
        with self._use(conn) as c:
            c.execute("DELETE FROM todo_label WHERE todo_id = ?", (int(task_id),))
            cur = c.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            self._check_one(cur.rowcount, task_id, "delete task")
        logger.debug("Task %s deleted", task_id)

    # ---- labels / references ----

    def attach_labels(
        self, task_id: int, labels: Iterable[str], *, conn: sqlite3.Connection | None = None
    ) -> None:
        """Attach labels; repeats are ignored by the (task, label) primary key."""
        clean = [bound_text(lbl, LABEL_MAX_LEN, strip_leading=True) for lbl in labels]
        clean = [lbl for lbl in clean if lbl]
        with self._use(conn) as c:
            self._require_task(c, task_id)
            c.executemany(
                "INSERT OR IGNORE INTO todo_label (todo_id, label) VALUES (?, ?)",
                [(int(task_id), lbl) for lbl in clean],
            )
        logger.debug("Task %s labels+=%s", task_id, clean)

    def labels_of(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> list[str]:
        with self._use(conn) as c:
            cur = c.execute(
                "SELECT label FROM todo_label WHERE todo_id = ? ORDER BY rowid ASC",
                (int(task_id),),
            )
            return [str(r["label"]) for r in cur.fetchall()]

    def set_reference(
        self, task_id: int, text: str, *, conn: sqlite3.Connection | None = None
    ) -> int:
        """
        Append a reference row and point the task at it.

        Earlier reference rows are kept (append-only log). Returns the new refs id.
        """
        descr = bound_text(text, REFERENCE_MAX_LEN)
        with self._use(conn) as c:
            cur = c.execute("INSERT INTO refs (descr) VALUES (?)", (descr,))
            ref_id = cur.lastrowid
            if ref_id is None:
                raise StoreError("SQLite did not return lastrowid for refs insert")
            cur = c.execute("UPDATE tasks SET refs_id = ? WHERE id = ?", (int(ref_id), int(task_id)))
            self._check_one(cur.rowcount, task_id, "set reference")
        logger.debug("Task %s refs_id=%s", task_id, ref_id)
        return int(ref_id)

    def current_reference(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> str:
        with self._use(conn) as c:
            row = c.execute("SELECT refs_id FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            if row is None:
                raise NotFound(f"task {task_id} not found", metadata={"task_id": task_id})
            if row["refs_id"] is None:
                return ""
            ref = c.execute("SELECT descr FROM refs WHERE id = ?", (int(row["refs_id"]),)).fetchone()
        if ref is None:
            logger.warning("Task %s points at missing refs row %s", task_id, row["refs_id"])
            return ""
        return str(ref["descr"])

    # ---- steps ----

    def add_step(
        self, task_id: int, description: str, *, conn: sqlite3.Connection | None = None
    ) -> int:
        """Append a step; numbering is dense per task, starting at 0."""
        with self._use(conn) as c:
            self._require_task(c, task_id)
            (current,) = c.execute(
                "SELECT MAX(steps_num) FROM steps WHERE todo_id = ?", (int(task_id),)
            ).fetchone()
            step_id = 0 if current is None else int(current) + 1
            c.execute(
                "INSERT INTO steps (todo_id, steps_num, descr) VALUES (?, ?, ?)",
                (int(task_id), step_id, description.strip()),
            )
        logger.debug("Task %s step %s added", task_id, step_id)
        return step_id

    def get_step(
        self, task_id: int, step_id: int, *, conn: sqlite3.Connection | None = None
    ) -> Step:
        with self._use(conn) as c:
            row = c.execute(
                "SELECT * FROM steps WHERE todo_id = ? AND steps_num = ?",
                (int(task_id), int(step_id)),
            ).fetchone()
        if row is None:
            raise NotFound(
                f"step {step_id} of task {task_id} not found",
                metadata={"task_id": task_id, "step_id": step_id},
            )
        return self._row_to_step(row)

    def get_steps(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> list[Step]:
        with self._use(conn) as c:
            cur = c.execute(
                "SELECT * FROM steps WHERE todo_id = ? ORDER BY steps_num ASC", (int(task_id),)
            )
            return [self._row_to_step(r) for r in cur.fetchall()]

    def get_open_steps(
        self, task_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[Step]:
        with self._use(conn) as c:
            cur = c.execute(
                """
                SELECT *
                FROM steps
                WHERE todo_id = ? AND completion_date IS NULL
                ORDER BY steps_num ASC
                """,
                (int(task_id),),
            )
            return [self._row_to_step(r) for r in cur.fetchall()]

    def complete_step(
        self,
        task_id: int,
        step_id: int,
        *,
        now_ts: float,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._use(conn) as c:
            cur = c.execute(
                """
                UPDATE steps
                SET completion_date = COALESCE(completion_date, ?)
                WHERE todo_id = ? AND steps_num = ?
                """,
                (float(now_ts), int(task_id), int(step_id)),
            )
            if cur.rowcount != 1:
                raise NotFound(
                    f"step {step_id} of task {task_id} not found",
                    metadata={"task_id": task_id, "step_id": step_id},
                )
        logger.debug("Task %s step %s done", task_id, step_id)

    def complete_all_open_steps(
        self, task_id: int, *, now_ts: float, conn: sqlite3.Connection | None = None
    ) -> int:
        with self._use(conn) as c:
            cur = c.execute(
                """
                UPDATE steps
                SET completion_date = ?
                WHERE todo_id = ? AND completion_date IS NULL
                """,
                (float(now_ts), int(task_id)),
            )
            return int(cur.rowcount)

    def delete_step(
        self, task_id: int, step_id: int, *, conn: sqlite3.Connection | None = None
    ) -> None:
        with self._use(conn) as c:
            cur = c.execute(
                "DELETE FROM steps WHERE todo_id = ? AND steps_num = ?",
                (int(task_id), int(step_id)),
            )
            if cur.rowcount != 1:
                raise NotFound(
                    f"step {step_id} of task {task_id} not found",
                    metadata={"task_id": task_id, "step_id": step_id},
                )
        logger.debug("Task %s step %s deleted", task_id, step_id)

    def delete_all_steps(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> int:
        with self._use(conn) as c:
            cur = c.execute("DELETE FROM steps WHERE todo_id = ?", (int(task_id),))
            return int(cur.rowcount)

    # ---- diagnostics ----

    def orphan_counts(self) -> dict[str, int]:
        """Step/label rows whose task no longer exists (expected to be zero)."""
        with self.transaction() as conn:
            (steps,) = conn.execute(
                "SELECT COUNT(*) FROM steps WHERE todo_id NOT IN (SELECT id FROM tasks)"
            ).fetchone()
            (labels,) = conn.execute(
                "SELECT COUNT(*) FROM todo_label WHERE todo_id NOT IN (SELECT id FROM tasks)"
            ).fetchone()
        return {"steps": int(steps), "labels": int(labels)}
