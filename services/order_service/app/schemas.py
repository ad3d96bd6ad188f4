"""Pydantic schemas for the order management service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, field_validator


class OrderItemPayload(BaseModel):
    product_id: PositiveInt = Field(alias="productId")
    quantity: PositiveInt

    model_config = ConfigDict(populate_by_name=True)


class OrderCreate(BaseModel):
    customer_id: PositiveInt = Field(alias="customerId")
    items: list[OrderItemPayload] = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class OrderCreatedResponse(BaseModel):
    order_id: PositiveInt = Field(alias="orderId")

    model_config = ConfigDict(populate_by_name=True)


class OrderDetailResponse(BaseModel):
    product_id: int = Field(alias="productId")
    quantity: int
    unit_price: Decimal = Field(alias="unitPrice")
    line_total: Decimal = Field(alias="lineTotal")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class OrderResponse(BaseModel):
    id: PositiveInt
    customer_id: int = Field(alias="customerId")
    created_at: datetime = Field(alias="createdAt")
    total_amount: Decimal = Field(alias="totalAmount")
    details: list[OrderDetailResponse]

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class InventoryPayload(BaseModel):
    product_name: str = Field(min_length=1, max_length=255, alias="productName")
    stock: NonNegativeInt
    unit_price: Decimal = Field(ge=Decimal("0"), max_digits=12, decimal_places=2, alias="unitPrice")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("product_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            msg = "productName must be non-empty"
            raise ValueError(msg)
        return cleaned


class InventoryCreatedResponse(BaseModel):
    product_id: PositiveInt = Field(alias="productId")

    model_config = ConfigDict(populate_by_name=True)


class InventoryResponse(BaseModel):
    product_id: PositiveInt = Field(alias="productId")
    product_name: str = Field(alias="productName")
    stock: int
    unit_price: Decimal = Field(alias="unitPrice")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class AuditLogResponse(BaseModel):
    id: PositiveInt
    action: str
    details: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
