"""Service layer for orchestrating inventory, order and audit operations."""

from __future__ import annotations

import logging
from decimal import Decimal
from time import monotonic
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError

from services.common.config import DEFAULT_AUDIT_LOG_LIMIT

from .domain import (
    INVENTORY_CREATED,
    INVENTORY_DELETED,
    INVENTORY_UPDATED,
    ORDER_CREATED,
    AuditLog,
    Inventory,
    Order,
    OrderItemRequest,
    utcnow,
)
from .errors import BusinessRuleError, NotFoundError, UnexpectedError
from .metrics import (
    INVENTORY_CHANGES_TOTAL,
    ORDER_CREATE_LATENCY_SECONDS,
    ORDER_LINES_TOTAL,
    ORDERS_CREATED_TOTAL,
    TRANSACTION_ROLLBACKS_TOTAL,
    rollback_reason,
)
from .unit_of_work import UnitOfWork

_LOGGER = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def _validate_product(stock: int, unit_price: Decimal) -> Decimal:
    """Reject values the inventory table cannot hold exactly; return the price at cent scale."""

    if stock < 0:
        raise BusinessRuleError(f"Stock cannot be negative. Requested: {stock}")
    if not unit_price.is_finite() or unit_price < 0:
        raise BusinessRuleError(f"Unit price must be a non-negative amount. Requested: {unit_price}")
    if unit_price != unit_price.quantize(_CENT):
        raise BusinessRuleError(f"Unit price cannot have more than 2 decimal places. Requested: {unit_price}")
    return unit_price.quantize(_CENT)


async def _rollback(uow: UnitOfWork, operation: str, exc: BaseException) -> None:
    TRANSACTION_ROLLBACKS_TOTAL.labels(operation=operation, reason=rollback_reason(exc)).inc()
    _LOGGER.warning("Rolling back %s: %s", operation, exc)
    await uow.rollback()


class InventoryService:
    """Product administration; every write is audited in the same transaction."""

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow

    async def get_all(self) -> list[Inventory]:
        try:
            return await self.uow.inventory.get_all()
        except SQLAlchemyError as exc:
            raise UnexpectedError("Failed to read inventory") from exc

    async def get_by_product_id(self, product_id: int) -> Inventory | None:
        try:
            return await self.uow.inventory.get_by_product_id(product_id)
        except SQLAlchemyError as exc:
            raise UnexpectedError(f"Failed to read product {product_id}") from exc

    async def create(self, product_name: str, stock: int, unit_price: Decimal) -> int:
        unit_price = _validate_product(stock, unit_price)
        await self.uow.begin()
        try:
            product_id = await self.uow.inventory.create(
                Inventory(product_name=product_name, stock=stock, unit_price=unit_price)
            )
            await self.uow.audit_logs.create(
                AuditLog(
                    action=INVENTORY_CREATED,
                    details=f"ProductId={product_id}, Name={product_name}, Stock={stock}, Price={unit_price}",
                )
            )
        except Exception as exc:
            await _rollback(self.uow, "create_inventory", exc)
            raise
        await self.uow.commit()

        INVENTORY_CHANGES_TOTAL.labels(action=INVENTORY_CREATED).inc()
        _LOGGER.info("Created product %s (%s)", product_id, product_name)
        return product_id

    async def update(self, product_id: int, product_name: str, stock: int, unit_price: Decimal) -> None:
        unit_price = _validate_product(stock, unit_price)
        await self.uow.begin()
        try:
            if await self.uow.inventory.get_by_product_id(product_id) is None:
                raise NotFoundError("Product", product_id)

            await self.uow.inventory.update(product_id, product_name, stock, unit_price)
            await self.uow.audit_logs.create(
                AuditLog(
                    action=INVENTORY_UPDATED,
                    details=f"ProductId={product_id}, Name={product_name}, Stock={stock}, Price={unit_price}",
                )
            )
        except Exception as exc:
            await _rollback(self.uow, "update_inventory", exc)
            raise
        await self.uow.commit()

        INVENTORY_CHANGES_TOTAL.labels(action=INVENTORY_UPDATED).inc()
        _LOGGER.info("Updated product %s", product_id)

    async def delete(self, product_id: int) -> None:
        await self.uow.begin()
        try:
            existing = await self.uow.inventory.get_by_product_id(product_id)
            if existing is None:
                raise NotFoundError("Product", product_id)

            await self.uow.inventory.delete(product_id)
            await self.uow.audit_logs.create(
                AuditLog(
                    action=INVENTORY_DELETED,
                    details=f"ProductId={product_id}, Name={existing.product_name}",
                )
            )
        except Exception as exc:
            await _rollback(self.uow, "delete_inventory", exc)
            raise
        await self.uow.commit()

        INVENTORY_CHANGES_TOTAL.labels(action=INVENTORY_DELETED).inc()
        _LOGGER.info("Deleted product %s", product_id)


class OrderService:
    """Order placement against shared inventory."""

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow

    async def create_order(self, customer_id: int, items: Sequence[OrderItemRequest]) -> int:
        """Place an order, debiting stock line by line, and return its id.

        Stock checks and decrements happen in the caller's item order, so with
        several short lines the first one reported is the first one requested.
        Each decrement is written as soon as its line is checked; a failure on
        a later line rolls back the earlier decrements together with everything
        else, and the original error is re-raised unchanged.
        """

        start_time = monotonic()
        await self.uow.begin()
        try:
            if not items:
                raise BusinessRuleError("Order must have at least one item.")

            order = Order(customer_id=customer_id, created_at=utcnow())

            for item in items:
                product = await self.uow.inventory.get_by_product_id(item.product_id, for_update=True)
                if product is None:
                    raise NotFoundError("Product", item.product_id)

                if product.stock < item.quantity:
                    raise BusinessRuleError(
                        f"Insufficient stock for {product.product_name}. "
                        f"Available: {product.stock}, Requested: {item.quantity}"
                    )

                await self.uow.inventory.update_stock(item.product_id, product.stock - item.quantity)
                order.add_detail(item.product_id, item.quantity, product.unit_price)

            order_id = await self.uow.orders.create(order)

            await self.uow.audit_logs.create(
                AuditLog(
                    action=ORDER_CREATED,
                    details=(
                        f"OrderId={order_id}, CustomerId={customer_id}, "
                        f"Items={len(items)}, Total={order.total_amount:.2f}"
                    ),
                )
            )
        except Exception as exc:
            await _rollback(self.uow, "create_order", exc)
            ORDER_CREATE_LATENCY_SECONDS.observe(monotonic() - start_time)
            raise
        await self.uow.commit()

        ORDERS_CREATED_TOTAL.inc()
        ORDER_LINES_TOTAL.inc(len(order.details))
        ORDER_CREATE_LATENCY_SECONDS.observe(monotonic() - start_time)
        _LOGGER.info(
            "Created order %s for customer %s with %d line(s), total %s",
            order_id,
            customer_id,
            len(order.details),
            order.total_amount,
        )
        return order_id

    async def get_all_orders(self) -> list[Order]:
        try:
            return await self.uow.orders.get_all()
        except SQLAlchemyError as exc:
            raise UnexpectedError("Failed to read orders") from exc

    async def get_order_by_id(self, order_id: int) -> Order:
        try:
            order = await self.uow.orders.get_by_id(order_id)
        except SQLAlchemyError as exc:
            raise UnexpectedError(f"Failed to read order {order_id}") from exc
        if order is None:
            raise NotFoundError("Order", order_id)
        return order


class AuditLogService:
    """Read access to the audit trail."""

    def __init__(self, uow: UnitOfWork, default_limit: int = DEFAULT_AUDIT_LOG_LIMIT) -> None:
        self.uow = uow
        self.default_limit = default_limit

    async def get_all(self, limit: int | None = None) -> list[AuditLog]:
        """Return the most recent entries, newest first.

        The core puts no ceiling on ``limit``; bounding it is up to the caller.
        """

        resolved = self.default_limit if limit is None else limit
        try:
            return await self.uow.audit_logs.get_all(resolved)
        except SQLAlchemyError as exc:
            raise UnexpectedError("Failed to read audit log") from exc
