from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class ReviewCreate(BaseCreateSchema):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=200)
    comment: Optional[str] = Field(None, max_length=5000)


class ReviewUpdate(BaseUpdateSchema):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, max_length=200)
    comment: Optional[str] = Field(None, max_length=5000)


class ReviewResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    user_id: UUID
    reviewer_name: str
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProductReviewsResponse(BaseModel):
    items: List[ReviewResponse]
    total: int
    average_rating: Optional[float] = None
