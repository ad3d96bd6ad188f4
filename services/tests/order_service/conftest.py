from __future__ import annotations

import copy
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.common import create_engine, create_schema, dispose_engines, get_session_factory
from services.order_service.app.domain import AuditLog, Inventory, Order
from services.order_service.app.errors import InvalidStateError
from services.order_service.app.models import Base


@dataclass
class InMemoryState:
    inventory: dict[int, Inventory] = field(default_factory=dict)
    orders: dict[int, Order] = field(default_factory=dict)
    audit_logs: list[AuditLog] = field(default_factory=list)
    next_product_id: int = 1
    next_order_id: int = 1
    next_audit_id: int = 1
    writes: int = 0


class InMemoryInventoryRepository:
    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self.uow = uow

    async def get_by_product_id(self, product_id: int, *, for_update: bool = False) -> Inventory | None:
        product = self.uow.state.inventory.get(product_id)
        return copy.deepcopy(product)

    async def get_all(self) -> list[Inventory]:
        return [copy.deepcopy(product) for _, product in sorted(self.uow.state.inventory.items())]

    async def create(self, inventory: Inventory) -> int:
        state = self.uow.state
        product_id = state.next_product_id
        state.next_product_id += 1
        inventory.product_id = product_id
        state.inventory[product_id] = copy.deepcopy(inventory)
        state.writes += 1
        return product_id

    async def update(self, product_id: int, product_name: str, stock: int, unit_price: Decimal) -> None:
        state = self.uow.state
        state.writes += 1
        if product_id in state.inventory:
            state.inventory[product_id] = Inventory(
                product_id=product_id,
                product_name=product_name,
                stock=stock,
                unit_price=unit_price,
            )

    async def update_stock(self, product_id: int, new_stock: int) -> int:
        state = self.uow.state
        state.writes += 1
        product = state.inventory.get(product_id)
        if product is None:
            return 0
        product.stock = new_stock
        return 1

    async def delete(self, product_id: int) -> None:
        state = self.uow.state
        state.writes += 1
        state.inventory.pop(product_id, None)


class InMemoryOrderRepository:
    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self.uow = uow

    async def create(self, order: Order) -> int:
        state = self.uow.state
        order_id = state.next_order_id
        state.next_order_id += 1
        order.assign_id(order_id)
        state.orders[order_id] = copy.deepcopy(order)
        state.writes += 1
        return order_id

    async def get_by_id(self, order_id: int) -> Order | None:
        return copy.deepcopy(self.uow.state.orders.get(order_id))

    async def get_all(self) -> list[Order]:
        orders = sorted(
            self.uow.state.orders.values(),
            key=lambda order: (order.created_at, order.id),
            reverse=True,
        )
        return [copy.deepcopy(order) for order in orders]


class InMemoryAuditLogRepository:
    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self.uow = uow
        self.fail_with: Exception | None = None

    async def create(self, entry: AuditLog) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        state = self.uow.state
        entry.id = state.next_audit_id
        state.next_audit_id += 1
        state.audit_logs.append(copy.deepcopy(entry))
        state.writes += 1

    async def get_all(self, limit: int) -> list[AuditLog]:
        newest_first = sorted(
            self.uow.state.audit_logs,
            key=lambda entry: (entry.created_at, entry.id),
            reverse=True,
        )
        return [copy.deepcopy(entry) for entry in newest_first[:limit]]


class InMemoryUnitOfWork:
    """Snapshot-based stand-in for the SQLAlchemy unit of work."""

    def __init__(self, state: InMemoryState | None = None) -> None:
        self.state = state or InMemoryState()
        self._snapshot: InMemoryState | None = None
        self.commits = 0
        self.rollbacks = 0
        self.inventory = InMemoryInventoryRepository(self)
        self.orders = InMemoryOrderRepository(self)
        self.audit_logs = InMemoryAuditLogRepository(self)

    @property
    def in_transaction(self) -> bool:
        return self._snapshot is not None

    async def begin(self) -> None:
        if self._snapshot is not None:
            raise InvalidStateError("Transaction is already started.")
        self._snapshot = copy.deepcopy(self.state)

    async def commit(self) -> None:
        if self._snapshot is None:
            raise InvalidStateError("Transaction is not started.")
        self._snapshot = None
        self.commits += 1

    async def rollback(self) -> None:
        if self._snapshot is None:
            raise InvalidStateError("Transaction is not started.")
        self.state = self._snapshot
        self._snapshot = None
        self.rollbacks += 1

    def seed_product(self, name: str, stock: int, unit_price: str) -> int:
        product_id = self.state.next_product_id
        self.state.next_product_id += 1
        self.state.inventory[product_id] = Inventory(
            product_id=product_id,
            product_name=name,
            stock=stock,
            unit_price=Decimal(unit_price),
        )
        return product_id


@pytest.fixture
def fake_uow() -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}"
    engine = create_engine(database_url)
    await create_schema(engine, Base.metadata)
    try:
        yield get_session_factory(database_url)
    finally:
        await dispose_engines()
