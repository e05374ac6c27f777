from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from app.models.product import StockStatus
from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, PageResponse


# ==================== VARIANTS ====================

class VariantCreate(BaseCreateSchema):
    sku: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=50)
    size: Optional[str] = Field(None, max_length=20)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    initial_quantity: int = Field(0, ge=0, description="Opening stock for the variant")
    low_stock_threshold: int = Field(10, ge=0)


class VariantInventoryResponse(BaseResponseSchema):
    quantity: int
    reserved_quantity: int
    low_stock_threshold: int
    is_low_stock: bool
    is_in_stock: bool


class VariantResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    sku: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    name: str
    price: Optional[Decimal] = None
    is_active: bool
    stock_status: str
    inventory: Optional[VariantInventoryResponse] = None


# ==================== PRODUCTS ====================

class ProductCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=50)
    base_price: Decimal = Field(..., ge=0, decimal_places=2)
    stock_status: StockStatus = StockStatus.IN_STOCK
    allow_preorder: bool = False
    preorder_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    preorder_limit: Optional[int] = Field(None, ge=1)
    expected_stock_date: Optional[datetime] = None


class ProductUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    is_active: Optional[bool] = None
    stock_status: Optional[StockStatus] = None
    allow_preorder: Optional[bool] = None
    preorder_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    preorder_limit: Optional[int] = Field(None, ge=1)
    expected_stock_date: Optional[datetime] = None


class ProductBrief(BaseResponseSchema):
    id: UUID
    name: str
    sku: Optional[str] = None
    base_price: Decimal


class ProductResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    base_price: Decimal
    is_active: bool
    stock_status: str
    allow_preorder: bool
    preorder_price: Optional[Decimal] = None
    preorder_limit: Optional[int] = None
    expected_stock_date: Optional[datetime] = None
    total_preorders: int
    created_at: datetime


class ProductDetailResponse(ProductResponse):
    variants: List[VariantResponse] = []


class ProductListResponse(PageResponse):
    items: List[ProductResponse]
