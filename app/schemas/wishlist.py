from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel

from app.schemas.base import BaseResponseSchema, BaseCreateSchema
from app.schemas.product import ProductBrief


class WishlistAdd(BaseCreateSchema):
    product_id: UUID


class WishlistItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    created_at: datetime
    product: ProductBrief


class WishlistResponse(BaseModel):
    items: List[WishlistItemResponse]
    total: int
