"""SQLite record store for settings, posts, templates and products."""

from .db import RecordStore

__all__ = ["RecordStore"]
