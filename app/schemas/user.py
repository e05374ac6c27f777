from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.auth import UserResponse
from app.schemas.base import BaseUpdateSchema
from app.schemas.order import OrderResponse
from app.schemas.wishlist import WishlistItemResponse


class ProfileUpdate(BaseUpdateSchema):
    """Profile fields a customer may change. Email and role are fixed."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)


class ProfileUpdateResponse(BaseModel):
    message: str
    user: UserResponse


class OrderSummaryResponse(BaseModel):
    total_orders: int
    total_spent: Decimal
    recent_orders: List[OrderResponse]


class WishlistSummaryResponse(BaseModel):
    wishlist_count: int
    recent_wishlist: List[WishlistItemResponse]
