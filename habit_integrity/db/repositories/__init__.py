"""Repositories for the habit integrity SQLite database."""

from habit_integrity.db.repositories.integrity_repo import IntegrityRepository
from habit_integrity.db.repositories.log_repo import HabitLogRepository
from habit_integrity.db.repositories.run_repo import RunMetadataRepository

__all__ = [
    "HabitLogRepository",
    "IntegrityRepository",
    "RunMetadataRepository",
]
