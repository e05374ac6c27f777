from typing import List
import uuid

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import DuplicateResourceError, ProductNotFoundError, ResourceNotFoundError
from app.models.product import Product
from app.models.wishlist import WishlistItem


class WishlistService:
    """Service for a user's saved products."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_items(self, user_id: uuid.UUID) -> List[WishlistItem]:
        stmt = (
            select(WishlistItem)
            .options(selectinload(WishlistItem.product))
            .where(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def add_item(self, user_id: uuid.UUID, product_id: uuid.UUID) -> WishlistItem:
        product = await self.db.get(Product, product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundError(product_id)

        existing = await self.db.execute(
            select(WishlistItem.id).where(
                WishlistItem.user_id == user_id,
                WishlistItem.product_id == product_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateResourceError("Product already in wishlist", {"product_id": str(product_id)})

        item = WishlistItem(user_id=user_id, product_id=product_id)
        self.db.add(item)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateResourceError("Product already in wishlist", {"product_id": str(product_id)})

        await self.db.refresh(item, attribute_names=["product"])
        return item

    async def remove_item(self, user_id: uuid.UUID, item_id: uuid.UUID) -> None:
        stmt = select(WishlistItem).where(
            WishlistItem.id == item_id,
            WishlistItem.user_id == user_id,
        )
        item = (await self.db.execute(stmt)).scalar_one_or_none()
        if item is None:
            raise ResourceNotFoundError("Wishlist item not found", {"item_id": str(item_id)})
        await self.db.delete(item)
        await self.db.commit()

    async def remove_product(self, user_id: uuid.UUID, product_id: uuid.UUID) -> None:
        stmt = select(WishlistItem).where(
            WishlistItem.product_id == product_id,
            WishlistItem.user_id == user_id,
        )
        item = (await self.db.execute(stmt)).scalar_one_or_none()
        if item is None:
            raise ResourceNotFoundError("Product not in wishlist", {"product_id": str(product_id)})
        await self.db.delete(item)
        await self.db.commit()
