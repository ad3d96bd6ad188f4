"""Dependency helpers for the order management service."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .services import AuditLogService, InventoryService, OrderService
from .unit_of_work import SqlAlchemyUnitOfWork


async def get_unit_of_work(request: Request) -> AsyncIterator[SqlAlchemyUnitOfWork]:
    """Yield a unit of work scoped to the current request."""

    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        yield uow


def get_order_service(uow: SqlAlchemyUnitOfWork = Depends(get_unit_of_work)) -> OrderService:
    return OrderService(uow)


def get_inventory_service(uow: SqlAlchemyUnitOfWork = Depends(get_unit_of_work)) -> InventoryService:
    return InventoryService(uow)


def get_audit_log_service(
    request: Request,
    uow: SqlAlchemyUnitOfWork = Depends(get_unit_of_work),
) -> AuditLogService:
    return AuditLogService(uow, default_limit=request.app.state.settings.audit_log_default_limit)
