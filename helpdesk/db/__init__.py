"""Transactional access to the PostgreSQL store."""

from .database import Database, PostgresDatabase, PostgresUnitOfWork, UnitOfWork

__all__ = ["Database", "PostgresDatabase", "PostgresUnitOfWork", "UnitOfWork"]
