from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class CartItemAdd(BaseCreateSchema):
    product_id: UUID
    product_variant_id: Optional[UUID] = None
    quantity: int = Field(1, ge=1)
    is_preorder: bool = False


class CartItemUpdate(BaseUpdateSchema):
    quantity: int = Field(..., ge=1)


class CartItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    product_variant_id: Optional[UUID] = None
    product_name: str
    variant_name: Optional[str] = None
    quantity: int
    price: Decimal
    line_total: Decimal
    is_preorder: bool
    created_at: datetime


class CartSummary(BaseModel):
    regular_items: int
    preorder_items: int
    total_items: int
    regular_subtotal: Decimal
    preorder_subtotal: Decimal
    total: Decimal


class CartResponse(BaseModel):
    id: UUID
    regular_items: List[CartItemResponse]
    preorder_items: List[CartItemResponse]
    summary: CartSummary
