"""Repository adapters - Profile store implementations."""

from .memory import InMemoryProfileStore
from .postgres import PostgresProfileStore, run_migrations

__all__ = ["InMemoryProfileStore", "PostgresProfileStore", "run_migrations"]
