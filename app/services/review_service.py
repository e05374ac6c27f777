"""
Review Service

Users may review a product once, and only after an order containing it
has been delivered to them.
"""
from typing import List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    DuplicateResourceError,
    ProductNotFoundError,
    ResourceNotFoundError,
    ReviewNotAllowedError,
)
from app.models.product import Product
from app.models.product_review import ProductReview
from app.schemas.review import ReviewCreate, ReviewUpdate
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)


class ReviewService:
    """Service for product reviews."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_product_reviews(
        self,
        product_id: uuid.UUID,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ProductReview], int, Optional[float]]:
        """Reviews newest first, with total count and average rating."""
        stats_stmt = select(func.count(ProductReview.id), func.avg(ProductReview.rating)).where(
            ProductReview.product_id == product_id
        )
        total, average = (await self.db.execute(stats_stmt)).one()

        stmt = (
            select(ProductReview)
            .options(selectinload(ProductReview.user))
            .where(ProductReview.product_id == product_id)
            .order_by(ProductReview.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        average_rating = round(float(average), 1) if average is not None else None
        return list(result.scalars().all()), total, average_rating

    async def _get_review(self, review_id: uuid.UUID) -> Optional[ProductReview]:
        stmt = (
            select(ProductReview)
            .options(selectinload(ProductReview.user))
            .where(ProductReview.id == review_id)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _get_owned_review(self, user_id: uuid.UUID, review_id: uuid.UUID) -> ProductReview:
        review = await self._get_review(review_id)
        if review is None or review.user_id != user_id:
            raise ResourceNotFoundError("Review not found", {"review_id": str(review_id)})
        return review

    async def create_review(
        self,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        data: ReviewCreate,
    ) -> ProductReview:
        product = await self.db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        if not await OrderService(self.db).has_delivered_purchase(user_id, product_id):
            raise ReviewNotAllowedError(
                "You can only review products from delivered orders",
                {"product_id": str(product_id)},
            )

        existing = await self.db.execute(
            select(ProductReview.id).where(
                ProductReview.user_id == user_id,
                ProductReview.product_id == product_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateResourceError(
                "You have already reviewed this product",
                {"product_id": str(product_id)},
            )

        review = ProductReview(user_id=user_id, product_id=product_id, **data.model_dump())
        self.db.add(review)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateResourceError(
                "You have already reviewed this product",
                {"product_id": str(product_id)},
            )

        logger.info(f"Review {review.id} created for product {product_id}")
        return await self._get_review(review.id)

    async def update_review(
        self,
        user_id: uuid.UUID,
        review_id: uuid.UUID,
        data: ReviewUpdate,
    ) -> ProductReview:
        review = await self._get_owned_review(user_id, review_id)

        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(review, key, value)

        await self.db.commit()
        return await self._get_review(review_id)

    async def delete_review(self, user_id: uuid.UUID, review_id: uuid.UUID) -> None:
        review = await self._get_owned_review(user_id, review_id)
        await self.db.delete(review)
        await self.db.commit()
