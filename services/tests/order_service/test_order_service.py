import asyncio
from decimal import Decimal

import pytest

from services.order_service.app.domain import ORDER_CREATED, OrderItemRequest
from services.order_service.app.errors import BusinessRuleError, NotFoundError
from services.order_service.app.services import InventoryService, OrderService
from services.order_service.app.unit_of_work import SqlAlchemyUnitOfWork


@pytest.mark.asyncio
async def test_create_order_debits_stock_and_audits(fake_uow) -> None:
    first = fake_uow.seed_product("Keyboard", 10, "30.00")
    second = fake_uow.seed_product("Mouse", 4, "12.50")

    order_id = await OrderService(fake_uow).create_order(
        7,
        [OrderItemRequest(first, 2), OrderItemRequest(second, 4)],
    )

    state = fake_uow.state
    assert state.inventory[first].stock == 8
    assert state.inventory[second].stock == 0
    assert list(state.orders) == [order_id]
    order = state.orders[order_id]
    assert order.customer_id == 7
    assert [(d.order_id, d.product_id, d.quantity) for d in order.details] == [
        (order_id, first, 2),
        (order_id, second, 4),
    ]
    assert order.total_amount == Decimal("110.00")
    assert len(state.audit_logs) == 1
    entry = state.audit_logs[0]
    assert entry.action == ORDER_CREATED
    assert entry.details == f"OrderId={order_id}, CustomerId=7, Items=2, Total=110.00"
    assert fake_uow.commits == 1
    assert fake_uow.rollbacks == 0


@pytest.mark.asyncio
async def test_insufficient_stock_rolls_back_every_line(fake_uow) -> None:
    product_a = fake_uow.seed_product("A", 5, "1.00")
    product_b = fake_uow.seed_product("B", 2, "1.00")

    with pytest.raises(BusinessRuleError, match="Insufficient stock for B. Available: 2, Requested: 5"):
        await OrderService(fake_uow).create_order(
            1,
            [OrderItemRequest(product_a, 3), OrderItemRequest(product_b, 5)],
        )

    state = fake_uow.state
    assert state.inventory[product_a].stock == 5
    assert state.inventory[product_b].stock == 2
    assert state.orders == {}
    assert state.audit_logs == []
    assert fake_uow.rollbacks == 1
    assert not fake_uow.in_transaction


@pytest.mark.asyncio
async def test_first_short_line_in_request_order_is_reported(fake_uow) -> None:
    product_a = fake_uow.seed_product("A", 1, "1.00")
    product_b = fake_uow.seed_product("B", 1, "1.00")

    with pytest.raises(BusinessRuleError, match="for B"):
        await OrderService(fake_uow).create_order(
            1,
            [OrderItemRequest(product_b, 2), OrderItemRequest(product_a, 2)],
        )


@pytest.mark.asyncio
async def test_empty_order_is_rejected_without_writes(fake_uow) -> None:
    fake_uow.seed_product("A", 5, "1.00")

    with pytest.raises(BusinessRuleError, match="at least one item"):
        await OrderService(fake_uow).create_order(1, [])

    assert fake_uow.state.writes == 0
    assert fake_uow.state.orders == {}
    assert fake_uow.rollbacks == 1


@pytest.mark.asyncio
async def test_unknown_product_is_not_found(fake_uow) -> None:
    product_a = fake_uow.seed_product("A", 5, "1.00")

    with pytest.raises(NotFoundError) as exc_info:
        await OrderService(fake_uow).create_order(
            1,
            [OrderItemRequest(product_a, 1), OrderItemRequest(999, 1)],
        )

    assert exc_info.value.entity == "Product"
    assert exc_info.value.key == 999
    assert fake_uow.state.inventory[product_a].stock == 5
    assert fake_uow.state.orders == {}
    assert fake_uow.state.audit_logs == []


@pytest.mark.asyncio
async def test_audit_failure_propagates_unchanged_and_restores_stock(fake_uow) -> None:
    product_a = fake_uow.seed_product("A", 5, "1.00")
    failure = RuntimeError("audit store offline")
    fake_uow.audit_logs.fail_with = failure

    with pytest.raises(RuntimeError) as exc_info:
        await OrderService(fake_uow).create_order(1, [OrderItemRequest(product_a, 2)])

    assert exc_info.value is failure
    assert fake_uow.state.inventory[product_a].stock == 5
    assert fake_uow.state.orders == {}


@pytest.mark.asyncio
async def test_get_order_by_id_missing_is_not_found(fake_uow) -> None:
    with pytest.raises(NotFoundError, match="Order"):
        await OrderService(fake_uow).get_order_by_id(42)
    assert fake_uow.commits == 0
    assert not fake_uow.in_transaction


@pytest.mark.asyncio
async def test_order_keeps_price_snapshot(session_factory) -> None:
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        inventory = InventoryService(uow)
        first = await inventory.create("P1", 10, Decimal("10.00"))
        second = await inventory.create("P2", 10, Decimal("5.00"))

    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        order_id = await OrderService(uow).create_order(
            3,
            [OrderItemRequest(first, 2), OrderItemRequest(second, 1)],
        )

    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        await InventoryService(uow).update(first, "P1", 8, Decimal("99.00"))

    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        order = await OrderService(uow).get_order_by_id(order_id)

    assert order.customer_id == 3
    assert order.total_amount == Decimal("25.00")
    assert [(d.product_id, d.quantity, d.unit_price) for d in order.details] == [
        (first, 2, Decimal("10.00")),
        (second, 1, Decimal("5.00")),
    ]
    assert all(detail.order_id == order_id for detail in order.details)


@pytest.mark.asyncio
async def test_insufficient_stock_rolls_back_in_database(session_factory) -> None:
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        inventory = InventoryService(uow)
        product_a = await inventory.create("A", 5, Decimal("1.00"))
        product_b = await inventory.create("B", 2, Decimal("1.00"))

    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        with pytest.raises(BusinessRuleError):
            await OrderService(uow).create_order(
                1,
                [OrderItemRequest(product_a, 3), OrderItemRequest(product_b, 5)],
            )

    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        stored_a = await uow.inventory.get_by_product_id(product_a)
        orders = await OrderService(uow).get_all_orders()
        audit = await uow.audit_logs.get_all(100)

    assert stored_a is not None and stored_a.stock == 5
    assert orders == []
    assert [entry.action for entry in audit] == ["INVENTORY_CREATED", "INVENTORY_CREATED"]


@pytest.mark.asyncio
async def test_get_all_orders_newest_first_with_details(session_factory) -> None:
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        inventory = InventoryService(uow)
        product_a = await inventory.create("A", 10, Decimal("2.00"))
        product_b = await inventory.create("B", 10, Decimal("3.00"))

    order_ids = []
    for items in (
        [OrderItemRequest(product_a, 1)],
        [OrderItemRequest(product_a, 2), OrderItemRequest(product_b, 1)],
    ):
        async with SqlAlchemyUnitOfWork(session_factory) as uow:
            order_ids.append(await OrderService(uow).create_order(1, items))

    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        orders = await OrderService(uow).get_all_orders()
        remaining = await uow.inventory.get_by_product_id(product_a)

    assert [order.id for order in orders] == list(reversed(order_ids))
    assert [len(order.details) for order in orders] == [2, 1]
    assert orders[0].total_amount == Decimal("7.00")
    assert remaining is not None and remaining.stock == 7


@pytest.mark.asyncio
async def test_concurrent_orders_cannot_oversell(session_factory) -> None:
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        product_id = await InventoryService(uow).create("Last One", 1, Decimal("9.99"))

    async def place() -> int | Exception:
        async with SqlAlchemyUnitOfWork(session_factory) as uow:
            try:
                return await OrderService(uow).create_order(1, [OrderItemRequest(product_id, 1)])
            except BusinessRuleError as exc:
                return exc

    results = await asyncio.gather(place(), place())

    assert sum(isinstance(result, int) for result in results) == 1
    assert sum(isinstance(result, BusinessRuleError) for result in results) == 1
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        product = await uow.inventory.get_by_product_id(product_id)
    assert product is not None and product.stock == 0
