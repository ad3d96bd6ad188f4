"""Inventory HTTP endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_inventory_service
from ..errors import NotFoundError
from ..schemas import InventoryCreatedResponse, InventoryPayload, InventoryResponse
from ..services import InventoryService

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=list[InventoryResponse])
async def list_inventory(service: InventoryService = Depends(get_inventory_service)) -> list[InventoryResponse]:
    products = await service.get_all()
    return [InventoryResponse.model_validate(product) for product in products]


@router.get("/{product_id}", response_model=InventoryResponse)
async def get_inventory_item(
    product_id: int,
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryResponse:
    product = await service.get_by_product_id(product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return InventoryResponse.model_validate(product)


@router.post("", response_model=InventoryCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    payload: InventoryPayload,
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryCreatedResponse:
    product_id = await service.create(payload.product_name, payload.stock, payload.unit_price)
    return InventoryCreatedResponse(product_id=product_id)


@router.put("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_inventory_item(
    product_id: int,
    payload: InventoryPayload,
    service: InventoryService = Depends(get_inventory_service),
) -> Response:
    await service.update(product_id, payload.product_name, payload.stock, payload.unit_price)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inventory_item(
    product_id: int,
    service: InventoryService = Depends(get_inventory_service),
) -> Response:
    await service.delete(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
