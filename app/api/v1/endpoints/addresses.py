from typing import List
import uuid

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser
from app.schemas.address import AddressCreate, AddressUpdate, AddressResponse
from app.services.address_service import AddressService

router = APIRouter(tags=["Addresses"])


@router.get("", response_model=List[AddressResponse])
async def list_addresses(db: DB, current_user: CurrentUser):
    """List saved addresses, defaults first."""
    return await AddressService(db).list_addresses(current_user.id)


@router.post("", response_model=AddressResponse, status_code=status.HTTP_201_CREATED)
async def create_address(data: AddressCreate, db: DB, current_user: CurrentUser):
    """Save an address. A new default replaces the previous default of the same type."""
    return await AddressService(db).create_address(current_user.id, data)


@router.put("/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: uuid.UUID,
    data: AddressUpdate,
    db: DB,
    current_user: CurrentUser,
):
    return await AddressService(db).update_address(current_user.id, address_id, data)


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_address(address_id: uuid.UUID, db: DB, current_user: CurrentUser):
    await AddressService(db).delete_address(current_user.id, address_id)
