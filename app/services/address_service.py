"""
Address Service

Owner-scoped CRUD for saved addresses. At most one default address exists
per user and address type.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AddressNotFoundError
from app.models.address import Address
from app.schemas.address import AddressCreate, AddressUpdate

logger = logging.getLogger(__name__)


class AddressService:
    """Service for managing a user's saved addresses."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_addresses(self, user_id: uuid.UUID) -> List[Address]:
        """Default addresses first, then newest first."""
        stmt = (
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_owned_address(
        self,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> Address:
        """Load an address owned by the user or raise AddressNotFoundError."""
        address = await self.find_owned_address(user_id, address_id)
        if address is None:
            raise AddressNotFoundError(address_id)
        return address

    async def find_owned_address(
        self,
        user_id: uuid.UUID,
        address_id: Optional[uuid.UUID],
    ) -> Optional[Address]:
        if address_id is None:
            return None
        stmt = select(Address).where(
            Address.id == address_id,
            Address.user_id == user_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _unset_defaults(self, user_id: uuid.UUID, address_type: str) -> None:
        await self.db.execute(
            update(Address)
            .where(Address.user_id == user_id, Address.type == address_type)
            .values(is_default=False)
        )

    async def create_address(self, user_id: uuid.UUID, data: AddressCreate) -> Address:
        if data.is_default:
            await self._unset_defaults(user_id, data.type.value)

        address = Address(
            user_id=user_id,
            **data.model_dump(exclude={"type"}),
            type=data.type.value,
        )
        self.db.add(address)
        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def update_address(
        self,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
        data: AddressUpdate,
    ) -> Address:
        address = await self.get_owned_address(user_id, address_id)
        update_data = data.model_dump(exclude_unset=True)

        if "type" in update_data and update_data["type"] is not None:
            update_data["type"] = update_data["type"].value

        target_type = update_data.get("type") or address.type
        if update_data.get("is_default"):
            await self._unset_defaults(user_id, target_type)

        for field, value in update_data.items():
            if value is not None:
                setattr(address, field, value)

        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def delete_address(self, user_id: uuid.UUID, address_id: uuid.UUID) -> None:
        address = await self.get_owned_address(user_id, address_id)
        await self.db.delete(address)
        await self.db.commit()
        logger.info(f"Deleted address {address_id} for user {user_id}")
