from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema, BaseUpdateSchema


class InventoryUpdate(BaseUpdateSchema):
    quantity: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)


class InventoryResponse(BaseResponseSchema):
    id: UUID
    product_variant_id: UUID
    quantity: int
    reserved_quantity: int
    low_stock_threshold: int
    is_low_stock: bool
    is_in_stock: bool
    updated_at: datetime


class VariantAvailability(BaseModel):
    """Stock view for a variant, including variants with no stock record."""
    product_variant_id: UUID
    product_id: UUID
    product_name: str
    variant_name: str
    quantity: int
    low_stock_threshold: int
    is_low_stock: bool
    is_in_stock: bool


class LowStockResponse(BaseModel):
    items: List[VariantAvailability]
    total: int
