"""Data access for inventory, orders and the audit log.

Each store is described by a ``Protocol`` and implemented once on top of an
``AsyncSession``. Stores never begin, commit or roll back: the unit of work
that owns the session decides the transaction boundary.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, Sequence

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .domain import AuditLog, Inventory, Order, OrderDetail
from .models import AuditLogRecord, InventoryRecord, OrderDetailRecord, OrderRecord

_CENT = Decimal("0.01")


def _to_cents(amount: Decimal) -> int:
    return int((amount * Decimal("100")).to_integral_value(rounding=ROUND_HALF_UP))


def _from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / Decimal("100")).quantize(_CENT)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class InventoryRepository(Protocol):
    async def get_by_product_id(self, product_id: int, *, for_update: bool = False) -> Inventory | None: ...

    async def get_all(self) -> list[Inventory]: ...

    async def create(self, inventory: Inventory) -> int: ...

    async def update(self, product_id: int, product_name: str, stock: int, unit_price: Decimal) -> None: ...

    async def update_stock(self, product_id: int, new_stock: int) -> int: ...

    async def delete(self, product_id: int) -> None: ...


class OrderRepository(Protocol):
    async def create(self, order: Order) -> int: ...

    async def get_by_id(self, order_id: int) -> Order | None: ...

    async def get_all(self) -> list[Order]: ...


class AuditLogRepository(Protocol):
    async def create(self, entry: AuditLog) -> None: ...

    async def get_all(self, limit: int) -> list[AuditLog]: ...


class SqlAlchemyInventoryRepository:
    """Inventory rows keyed by product id."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_product_id(self, product_id: int, *, for_update: bool = False) -> Inventory | None:
        stmt = (
            select(InventoryRecord)
            .where(InventoryRecord.product_id == product_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        return None if record is None else self._to_domain(record)

    async def get_all(self) -> list[Inventory]:
        result = await self.session.execute(select(InventoryRecord).order_by(InventoryRecord.product_id))
        return [self._to_domain(record) for record in result.scalars()]

    async def create(self, inventory: Inventory) -> int:
        record = InventoryRecord(
            product_name=inventory.product_name,
            stock=inventory.stock,
            unit_price_cents=_to_cents(inventory.unit_price),
        )
        self.session.add(record)
        await self.session.flush()
        inventory.product_id = record.product_id
        return record.product_id

    async def update(self, product_id: int, product_name: str, stock: int, unit_price: Decimal) -> None:
        await self.session.execute(
            update(InventoryRecord)
            .where(InventoryRecord.product_id == product_id)
            .values(product_name=product_name, stock=stock, unit_price_cents=_to_cents(unit_price))
        )

    async def update_stock(self, product_id: int, new_stock: int) -> int:
        result = await self.session.execute(
            update(InventoryRecord).where(InventoryRecord.product_id == product_id).values(stock=new_stock)
        )
        return result.rowcount

    async def delete(self, product_id: int) -> None:
        await self.session.execute(delete(InventoryRecord).where(InventoryRecord.product_id == product_id))

    @staticmethod
    def _to_domain(record: InventoryRecord) -> Inventory:
        return Inventory(
            product_id=record.product_id,
            product_name=record.product_name,
            stock=record.stock,
            unit_price=_from_cents(record.unit_price_cents),
        )


class SqlAlchemyOrderRepository:
    """Orders persisted together with their details."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, order: Order) -> int:
        record = OrderRecord(customer_id=order.customer_id, created_at=order.created_at)
        self.session.add(record)
        await self.session.flush()

        order.assign_id(record.id)
        if order.details:
            await self.session.execute(
                insert(OrderDetailRecord),
                [
                    {
                        "order_id": detail.order_id,
                        "product_id": detail.product_id,
                        "quantity": detail.quantity,
                        "unit_price_cents": _to_cents(detail.unit_price),
                    }
                    for detail in order.details
                ],
            )
        return record.id

    async def get_by_id(self, order_id: int) -> Order | None:
        result = await self.session.execute(select(OrderRecord).where(OrderRecord.id == order_id))
        record = result.scalar_one_or_none()
        if record is None:
            return None

        details = await self._load_details([order_id])
        return self._to_domain(record, details.get(order_id, []))

    async def get_all(self) -> list[Order]:
        result = await self.session.execute(
            select(OrderRecord).order_by(OrderRecord.created_at.desc(), OrderRecord.id.desc())
        )
        records = list(result.scalars())
        if not records:
            return []

        details = await self._load_details([record.id for record in records])
        return [self._to_domain(record, details.get(record.id, [])) for record in records]

    async def _load_details(self, order_ids: Sequence[int]) -> dict[int, list[OrderDetail]]:
        result = await self.session.execute(
            select(OrderDetailRecord)
            .where(OrderDetailRecord.order_id.in_(order_ids))
            .order_by(OrderDetailRecord.order_id, OrderDetailRecord.id)
        )
        grouped: dict[int, list[OrderDetail]] = defaultdict(list)
        for row in result.scalars():
            grouped[row.order_id].append(
                OrderDetail(
                    order_id=row.order_id,
                    product_id=row.product_id,
                    quantity=row.quantity,
                    unit_price=_from_cents(row.unit_price_cents),
                )
            )
        return grouped

    @staticmethod
    def _to_domain(record: OrderRecord, details: list[OrderDetail]) -> Order:
        return Order(
            id=record.id,
            customer_id=record.customer_id,
            created_at=_as_utc(record.created_at),
            details=list(details),
        )


class SqlAlchemyAuditLogRepository:
    """Append-only audit trail."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, entry: AuditLog) -> None:
        record = AuditLogRecord(action=entry.action, details=entry.details, created_at=entry.created_at)
        self.session.add(record)
        await self.session.flush()
        entry.id = record.id

    async def get_all(self, limit: int) -> list[AuditLog]:
        result = await self.session.execute(
            select(AuditLogRecord)
            .order_by(AuditLogRecord.created_at.desc(), AuditLogRecord.id.desc())
            .limit(limit)
        )
        return [
            AuditLog(
                id=record.id,
                action=record.action,
                details=record.details,
                created_at=_as_utc(record.created_at),
            )
            for record in result.scalars()
        ]
