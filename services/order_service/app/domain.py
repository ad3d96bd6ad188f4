"""Domain entities for inventory, orders and the audit trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Final

INVENTORY_CREATED: Final = "INVENTORY_CREATED"
INVENTORY_UPDATED: Final = "INVENTORY_UPDATED"
INVENTORY_DELETED: Final = "INVENTORY_DELETED"
ORDER_CREATED: Final = "ORDER_CREATED"


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class Inventory:
    product_name: str
    stock: int
    unit_price: Decimal
    product_id: int | None = None


@dataclass(frozen=True)
class OrderItemRequest:
    """A requested order line: which product and how many."""

    product_id: int
    quantity: int


@dataclass
class OrderDetail:
    product_id: int
    quantity: int
    unit_price: Decimal
    order_id: int | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class Order:
    """Order aggregate root.

    Details are only added through :meth:`add_detail`; each one carries the unit
    price captured when the line was added, not a live reference to inventory.
    ``order_id`` on the details stays ``None`` until the order store has
    inserted the parent row.
    """

    customer_id: int
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None
    details: list[OrderDetail] = field(default_factory=list)

    def add_detail(self, product_id: int, quantity: int, unit_price: Decimal) -> OrderDetail:
        detail = OrderDetail(
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            order_id=self.id,
        )
        self.details.append(detail)
        return detail

    def assign_id(self, order_id: int) -> None:
        self.id = order_id
        for detail in self.details:
            detail.order_id = order_id

    @property
    def total_amount(self) -> Decimal:
        return sum((detail.line_total for detail in self.details), Decimal("0"))


@dataclass
class AuditLog:
    action: str
    details: str
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None
