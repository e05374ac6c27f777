from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.preorder import PreorderStatus
from app.schemas.base import BaseResponseSchema, BaseCreateSchema, PageResponse
from app.schemas.order import StatusHistoryResponse, TransitionRecord
from app.schemas.product import ProductBrief


# ==================== REQUESTS ====================

class PreorderCreate(BaseCreateSchema):
    product_id: UUID
    product_variant_id: Optional[UUID] = None
    quantity: int = Field(1, ge=1)
    shipping_address_id: Optional[UUID] = None
    deposit_amount: Decimal = Field(Decimal("0"), ge=0)
    notify_when_ready: bool = True


class PreorderCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PreorderStatusUpdate(BaseModel):
    status: PreorderStatus
    tracking_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


# ==================== RESPONSES ====================

class PreorderResponse(BaseResponseSchema):
    id: UUID
    user_id: UUID
    product_id: UUID
    product_variant_id: Optional[UUID] = None
    quantity: int
    price: Decimal
    total_amount: Decimal
    status: str
    deposit_paid: Decimal
    remaining_amount: Decimal
    expected_date: Optional[datetime] = None
    shipping_address_id: Optional[UUID] = None
    notify_when_ready: bool
    tracking_number: Optional[str] = None
    admin_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    product: Optional[ProductBrief] = None


class PreorderSummary(BaseModel):
    total_amount: Decimal
    deposit_paid: Decimal
    remaining_amount: Decimal
    expected_delivery: Optional[datetime] = None


class PreorderCreateResponse(BaseModel):
    preorder: PreorderResponse
    summary: PreorderSummary


class RefundInfo(BaseModel):
    amount: Decimal
    status: str
    estimated_days: str


class PreorderCancelResponse(BaseModel):
    preorder: PreorderResponse
    refund_info: Optional[RefundInfo] = None


class PreorderCalculations(BaseModel):
    total_amount: Decimal
    is_overdue: bool
    days_until_expected: Optional[int] = None
    deposit_percentage: float


class PreorderDetailResponse(BaseModel):
    preorder: PreorderResponse
    calculations: PreorderCalculations
    timeline: List[StatusHistoryResponse]


class PreorderListSummary(BaseModel):
    total_preorders: int
    status_distribution: Dict[str, int]


class PreorderListResponse(PageResponse):
    items: List[PreorderResponse]
    summary: Optional[PreorderListSummary] = None


class PreorderStatusUpdateResponse(BaseModel):
    preorder: PreorderResponse
    transition: TransitionRecord
