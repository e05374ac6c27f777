from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.order import OrderStatus
from app.schemas.base import BaseResponseSchema, BaseCreateSchema, PageResponse
from app.schemas.address import AddressResponse


# ==================== REQUESTS ====================

class OrderCreate(BaseCreateSchema):
    """Checkout request. The cart supplies the lines."""
    shipping_address_id: UUID
    billing_address_id: Optional[UUID] = None
    payment_method: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None


class OrderCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class OrderStatusUpdate(BaseModel):
    """Admin status change."""
    status: OrderStatus
    tracking_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


# ==================== RESPONSES ====================

class OrderItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    product_variant_id: Optional[UUID] = None
    product_name: str
    variant_name: Optional[str] = None
    quantity: int
    price: Decimal
    total: Decimal
    is_preorder: bool


class StatusHistoryResponse(BaseResponseSchema):
    id: UUID
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[UUID] = None
    notes: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseResponseSchema):
    id: UUID
    order_number: str
    user_id: UUID
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    order_type: str
    total_amount: Decimal
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    confirmed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []
    shipping_address: Optional[AddressResponse] = None
    billing_address: Optional[AddressResponse] = None


class OrderDetailResponse(OrderResponse):
    status_history: List[StatusHistoryResponse] = []


class OrderListResponse(PageResponse):
    """Paginated order list."""
    items: List[OrderResponse]


class OrderStatusView(BaseModel):
    id: UUID
    order_number: str
    status: str
    payment_status: str
    tracking_number: Optional[str] = None
    allowed_transitions: List[str]
    is_terminal: bool
    updated_at: datetime


class TransitionRecord(BaseModel):
    from_status: str
    to_status: str
    changed_by: UUID
    timestamp: datetime


class OrderStatusUpdateResponse(BaseModel):
    order: OrderResponse
    transition: TransitionRecord
