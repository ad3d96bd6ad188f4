"""HTTP routes for order placement and lookup."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..dependencies import get_order_service
from ..domain import OrderItemRequest
from ..schemas import OrderCreate, OrderCreatedResponse, OrderResponse
from ..services import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderCreatedResponse:
    items = [OrderItemRequest(product_id=item.product_id, quantity=item.quantity) for item in payload.items]
    order_id = await service.create_order(payload.customer_id, items)
    return OrderCreatedResponse(order_id=order_id)


@router.get("", response_model=list[OrderResponse])
async def list_orders(service: OrderService = Depends(get_order_service)) -> list[OrderResponse]:
    orders = await service.get_all_orders()
    return [OrderResponse.model_validate(order) for order in orders]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, service: OrderService = Depends(get_order_service)) -> OrderResponse:
    order = await service.get_order_by_id(order_id)
    return OrderResponse.model_validate(order)
