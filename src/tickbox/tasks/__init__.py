"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskDone, Step, Priority, TaskStatus)
- task_store.py: SQLite-backed storage + per-relation primitives
- lifecycle.py: state machine that composes store primitives into transactions
- task_api.py: small high-level helpers used by the CLI
"""
