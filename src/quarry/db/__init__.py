"""Quarry database layer."""

from quarry.db.connection import Database
from quarry.db.migrations import MIGRATIONS, run_migrations
from quarry.db.repository import Repository
from quarry.db.schema import initialize
from quarry.db.vectors import deserialize_vector, serialize_vector

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "serialize_vector",
    "deserialize_vector",
]
