from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.address import AddressType
from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class AddressCreate(BaseCreateSchema):
    type: AddressType = AddressType.SHIPPING
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    street_address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    is_default: bool = False


class AddressUpdate(BaseUpdateSchema):
    type: Optional[AddressType] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    street_address: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, min_length=1, max_length=20)
    country: Optional[str] = Field(None, min_length=1, max_length=100)
    is_default: Optional[bool] = None


class AddressResponse(BaseResponseSchema):
    id: UUID
    type: str
    first_name: str
    last_name: str
    street_address: str
    city: str
    state: str
    postal_code: str
    country: str
    is_default: bool
    created_at: datetime
