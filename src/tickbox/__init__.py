"""tickbox: a personal task manager backed by a local SQLite file."""

__version__ = "0.1.0"
