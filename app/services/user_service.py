"""
User Service

Self-service account operations: profile edits, deactivation and the
order and wishlist summaries shown on the account page.
"""
from decimal import Decimal
from typing import List, Tuple
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.order import Order, PaymentStatus
from app.models.user import User
from app.models.wishlist import WishlistItem
from app.schemas.user import ProfileUpdate
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


class UserService:
    """Service for the signed-in user's own account."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        """Apply the fields the client sent. Blank strings leave a field as it was."""
        for field, value in data.model_dump(exclude_unset=True).items():
            if isinstance(value, str):
                value = value.strip()
            if not value:
                continue
            setattr(user, field, value)

        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User {user.id} updated their profile")
        return user

    async def deactivate_account(self, user: User) -> None:
        """
        Soft delete: the account is deactivated and can no longer sign in.

        Orders and preorders keep pointing at the user for history.
        """
        user.is_active = False
        await self.db.commit()
        logger.info(f"User {user.id} deactivated their account")

    async def get_order_summary(self, user_id: uuid.UUID) -> Tuple[int, Decimal, List[Order]]:
        """Order count, amount paid across completed payments and the latest orders."""
        spent_stmt = select(func.coalesce(func.sum(Order.total_amount), 0)).where(
            Order.user_id == user_id,
            Order.payment_status == PaymentStatus.COMPLETED.value,
        )
        total_spent = Decimal(str((await self.db.execute(spent_stmt)).scalar()))

        recent, total = await OrderService(self.db).get_orders(user_id, limit=RECENT_LIMIT)
        return total, total_spent, recent

    async def get_wishlist_summary(self, user_id: uuid.UUID) -> Tuple[int, List[WishlistItem]]:
        count_stmt = select(func.count(WishlistItem.id)).where(WishlistItem.user_id == user_id)
        count = (await self.db.execute(count_stmt)).scalar()

        stmt = (
            select(WishlistItem)
            .options(selectinload(WishlistItem.product))
            .where(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.created_at.desc())
            .limit(RECENT_LIMIT)
        )
        result = await self.db.execute(stmt)
        return count, list(result.scalars().all())
