"""Transaction boundary shared by the inventory, order and audit log stores."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction, async_sessionmaker

from services.common import WRITE_TRANSACTION

from .errors import InvalidStateError
from .repository import (
    AuditLogRepository,
    InventoryRepository,
    OrderRepository,
    SqlAlchemyAuditLogRepository,
    SqlAlchemyInventoryRepository,
    SqlAlchemyOrderRepository,
)

_LOGGER = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    inventory: InventoryRepository
    orders: OrderRepository
    audit_logs: AuditLogRepository

    @property
    def in_transaction(self) -> bool: ...

    async def begin(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SqlAlchemyUnitOfWork:
    """Owns one session and at most one open transaction on it.

    Use it as an async context manager. Leaving the block with a transaction
    still open rolls it back before the session is closed, so the connection
    always goes back to the pool outside a transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory()
        self._transaction: AsyncSessionTransaction | None = None
        self._closed = False
        self.inventory = SqlAlchemyInventoryRepository(self._session)
        self.orders = SqlAlchemyOrderRepository(self._session)
        self.audit_logs = SqlAlchemyAuditLogRepository(self._session)

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    async def begin(self) -> None:
        if self._closed:
            raise InvalidStateError("Unit of work is already closed.")
        if self._transaction is not None:
            raise InvalidStateError("Transaction is already started.")

        if self._session.in_transaction():
            # plain reads autobegin; end that before opening ours
            await self._session.rollback()
        self._transaction = await self._session.begin()
        await self._session.connection(execution_options={WRITE_TRANSACTION: True})
        _LOGGER.debug("Transaction started")

    async def commit(self) -> None:
        transaction = self._require_transaction()
        try:
            await transaction.commit()
        finally:
            self._transaction = None
        _LOGGER.debug("Transaction committed")

    async def rollback(self) -> None:
        transaction = self._require_transaction()
        try:
            await transaction.rollback()
        finally:
            self._transaction = None
        _LOGGER.debug("Transaction rolled back")

    async def close(self) -> None:
        if self._closed:
            return
        try:
            if self._transaction is not None:
                _LOGGER.warning("Unit of work closed with an open transaction; rolling back")
                await self.rollback()
        finally:
            self._closed = True
            await self._session.close()

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _require_transaction(self) -> AsyncSessionTransaction:
        if self._transaction is None:
            raise InvalidStateError("Transaction is not started.")
        return self._transaction
