from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Protocol

import asyncpg

from helpdesk.audit.repository import ActivityLogRepository
from helpdesk.directory.repository import DirectoryRepository
from helpdesk.errors import TransientInfraError
from helpdesk.notifications.repository import NotificationRepository
from helpdesk.tickets.repository import AttachmentRepository, TicketHistoryRepository, TicketRepository

from .schema import SCHEMA_STATEMENTS

logger = logging.getLogger(__name__)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class UnitOfWork(Protocol):
    """Repositories bound to one open transaction."""

    tickets: TicketRepository
    history: TicketHistoryRepository
    attachments: AttachmentRepository
    notifications: NotificationRepository
    directory: DirectoryRepository
    activity_logs: ActivityLogRepository

    def savepoint(self) -> AbstractAsyncContextManager["UnitOfWork"]:
        ...


class Database(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[UnitOfWork]:
        ...


class PostgresUnitOfWork:
    def __init__(self, connection: asyncpg.Connection) -> None:
        self._connection = connection
        self.tickets = TicketRepository(connection)
        self.history = TicketHistoryRepository(connection)
        self.attachments = AttachmentRepository(connection)
        self.notifications = NotificationRepository(connection)
        self.directory = DirectoryRepository(connection)
        self.activity_logs = ActivityLogRepository(connection)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator["PostgresUnitOfWork"]:
        """Run a block inside a nested transaction.

        A failure rolls back only the block, leaving the enclosing transaction usable.
        """

        async with self._connection.transaction():
            yield self


class PostgresDatabase:
    """``Database`` implementation over an ``asyncpg`` pool."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @classmethod
    async def connect(cls, dsn: str, *, min_size: int = 1, max_size: int = 10) -> "PostgresDatabase":
        try:
            pool = await asyncpg.create_pool(dsn=dsn, min_size=min_size, max_size=max_size)
        except _STORE_ERRORS as exc:
            raise TransientInfraError("Could not connect to the database") from exc
        return cls(pool)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresUnitOfWork]:
        """Yield a unit of work; commit on normal exit and roll back on any exception."""

        try:
            async with self._pool.acquire() as connection:
                async with connection.transaction():
                    yield PostgresUnitOfWork(connection)
        except _STORE_ERRORS as exc:
            logger.exception("Database transaction failed")
            raise TransientInfraError("The data store is temporarily unavailable") from exc

    async def ensure_schema(self) -> None:
        async with self._pool.acquire() as connection:
            for statement in SCHEMA_STATEMENTS:
                await connection.execute(statement)

    async def close(self) -> None:
        await self._pool.close()
