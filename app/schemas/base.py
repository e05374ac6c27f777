"""
Shared schema bases.

Response schemas are read straight from ORM objects. Money is kept as
Decimal internally and written to JSON as a number.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas that read from ORM models.

    Usage:
        class CartItemResponse(BaseResponseSchema):
            id: UUID
            price: Decimal
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
            Decimal: float,
        },
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """Request bodies that create something. Unknown fields are dropped."""
    model_config = ConfigDict(extra='ignore')


class BaseUpdateSchema(BaseModel):
    """Partial updates: only the fields a client sends are applied."""
    model_config = ConfigDict(extra='ignore')


class PageResponse(BaseModel):
    """Paging fields shared by list endpoints. `pages` is at least 1."""
    total: int
    page: int
    size: int
    pages: int
