"""
Preorder Service

Placement, cancellation and admin progression of preorders.

Placement locks the product row for the whole transaction, so concurrent
placements for the same product serialize on the limit check and on the
running total_preorders counter. Preorders never touch the inventory ledger.
"""
from typing import Dict, List, Optional, Tuple
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from math import ceil
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import (
    CommerceError,
    DuplicatePreorderError,
    InvalidStateTransitionError,
    PreorderLimitExceededError,
    PreorderNotAllowedError,
    PreorderNotFoundError,
    PreorderWindowClosedError,
    VariantNotFoundError,
)
from app.models.preorder import (
    Preorder,
    PreorderStatus,
    PreorderStatusHistory,
    ACTIVE_PREORDER_STATUSES,
)
from app.models.product import Product, ProductVariant
from app.schemas.preorder import PreorderCreate, PreorderStatusUpdate
from app.services.address_service import AddressService
from app.services import state_machine

logger = logging.getLogger(__name__)

REFUND_ESTIMATED_DAYS = "5-7"

_CENT = Decimal("0.01")

# Statuses after which the product no longer counts the preorder
_RELEASING_STATUSES = (PreorderStatus.CANCELLED.value, PreorderStatus.EXPIRED.value)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes read back from the store are UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class PreorderService:
    """Service for managing preorders."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== QUERIES ====================

    async def get_preorder_by_id(
        self,
        preorder_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        include_history: bool = False,
    ) -> Optional[Preorder]:
        options = [selectinload(Preorder.product)]
        if include_history:
            options.append(selectinload(Preorder.status_history))

        stmt = (
            select(Preorder)
            .options(*options)
            .where(Preorder.id == preorder_id)
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            stmt = stmt.where(Preorder.user_id == user_id)

        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_preorders(
        self,
        user_id: Optional[uuid.UUID] = None,
        status: Optional[PreorderStatus] = None,
        product_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Preorder], int]:
        """Preorders newest first. Without user_id this spans all users."""
        filters = []
        if user_id is not None:
            filters.append(Preorder.user_id == user_id)
        if status:
            filters.append(Preorder.status == status.value)
        if product_id:
            filters.append(Preorder.product_id == product_id)

        count_stmt = select(func.count(Preorder.id)).where(*filters)
        total = (await self.db.execute(count_stmt)).scalar()

        stmt = (
            select(Preorder)
            .options(selectinload(Preorder.product))
            .where(*filters)
            .order_by(Preorder.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_status_distribution(self, user_id: uuid.UUID) -> Dict[str, int]:
        stmt = (
            select(Preorder.status, func.count(Preorder.id))
            .where(Preorder.user_id == user_id)
            .group_by(Preorder.status)
        )
        result = await self.db.execute(stmt)
        return {status: count for status, count in result.all()}

    async def get_preorder_detail(self, user_id: uuid.UUID, preorder_id: uuid.UUID) -> dict:
        """Preorder with derived figures and its status timeline."""
        preorder = await self.get_preorder_by_id(preorder_id, user_id=user_id, include_history=True)
        if preorder is None:
            raise PreorderNotFoundError(preorder_id)

        return {
            "preorder": preorder,
            "calculations": self.calculate(preorder),
            "timeline": list(preorder.status_history),
        }

    @staticmethod
    def calculate(preorder: Preorder, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        total = preorder.total_amount
        expected = _as_utc(preorder.expected_date)

        days_until = None
        if expected is not None:
            days_until = ceil((expected - now).total_seconds() / 86400)

        deposit_percentage = 0.0
        if total > 0:
            deposit_percentage = float(round(preorder.deposit_paid / total * 100))

        return {
            "total_amount": total,
            "is_overdue": expected is not None and now > expected,
            "days_until_expected": days_until,
            "deposit_percentage": deposit_percentage,
        }

    async def _active_quantity(self, product_id: uuid.UUID) -> int:
        stmt = select(func.coalesce(func.sum(Preorder.quantity), 0)).where(
            Preorder.product_id == product_id,
            Preorder.status.in_(ACTIVE_PREORDER_STATUSES),
        )
        return int((await self.db.execute(stmt)).scalar() or 0)

    async def _find_active_duplicate(
        self,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID],
    ) -> Optional[Preorder]:
        stmt = select(Preorder).where(
            Preorder.user_id == user_id,
            Preorder.product_id == product_id,
            Preorder.status.in_(ACTIVE_PREORDER_STATUSES),
        )
        if variant_id is None:
            stmt = stmt.where(Preorder.product_variant_id.is_(None))
        else:
            stmt = stmt.where(Preorder.product_variant_id == variant_id)
        return (await self.db.execute(stmt.limit(1))).scalar_one_or_none()

    async def _lock_product(self, product_id: uuid.UUID) -> Optional[Product]:
        stmt = (
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _release_quantity(self, preorder: Preorder) -> None:
        """Take the preorder's quantity off the product counter, never below zero."""
        product = await self._lock_product(preorder.product_id)
        if product is not None:
            product.total_preorders = max(0, product.total_preorders - preorder.quantity)

    # ==================== PLACEMENT ====================

    async def _validate_placement(self, user_id: uuid.UUID, data: PreorderCreate) -> Product:
        product = await self._lock_product(data.product_id)
        if product is None or not product.is_active or not product.allow_preorder:
            raise PreorderNotAllowedError(data.product_id)

        if data.product_variant_id is not None:
            variant = await self.db.get(ProductVariant, data.product_variant_id)
            if variant is None or not variant.is_active or variant.product_id != product.id:
                raise VariantNotFoundError(data.product_variant_id)

        expected = _as_utc(product.expected_stock_date)
        if expected is not None and datetime.now(timezone.utc) > expected:
            raise PreorderWindowClosedError(expected)

        if product.preorder_limit is not None:
            existing = await self._active_quantity(product.id)
            if existing + data.quantity > product.preorder_limit:
                raise PreorderLimitExceededError(
                    available=max(0, product.preorder_limit - existing),
                    requested=data.quantity,
                )

        duplicate = await self._find_active_duplicate(user_id, product.id, data.product_variant_id)
        if duplicate is not None:
            raise DuplicatePreorderError(duplicate.id)

        if data.shipping_address_id is not None:
            await AddressService(self.db).get_owned_address(user_id, data.shipping_address_id)

        return product

    async def create_preorder(self, user_id: uuid.UUID, data: PreorderCreate) -> Tuple[Preorder, dict]:
        """
        Place a preorder.

        Returns the preorder and a summary with total, deposit, remaining
        amount and expected delivery date.
        """
        try:
            product = await self._validate_placement(user_id, data)

            price = product.effective_preorder_price
            total_amount = price * data.quantity
            # Amounts are stored in cents; the status follows the stored deposit
            deposit = min(data.deposit_amount, total_amount).quantize(_CENT, rounding=ROUND_HALF_UP)
            remaining = total_amount - deposit
            status = PreorderStatus.CONFIRMED if deposit > 0 else PreorderStatus.PENDING

            preorder = Preorder(
                user_id=user_id,
                product_id=product.id,
                product_variant_id=data.product_variant_id,
                quantity=data.quantity,
                price=price,
                status=status.value,
                deposit_paid=deposit,
                remaining_amount=remaining,
                expected_date=product.expected_stock_date,
                shipping_address_id=data.shipping_address_id,
                notify_when_ready=data.notify_when_ready,
                status_history=[
                    PreorderStatusHistory(
                        from_status=None,
                        to_status=status.value,
                        changed_by=user_id,
                        notes="Preorder placed",
                    )
                ],
            )
            self.db.add(preorder)
            product.total_preorders = product.total_preorders + data.quantity

            await self.db.commit()

        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Preorder for product {data.product_id} by user {user_id} rejected: {e.message}")
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Concurrent duplicate preorder for product {data.product_id} by user {user_id}: {e}")
            raise DuplicatePreorderError()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating preorder for user {user_id}: {e}")
            raise

        logger.info(
            f"Preorder {preorder.id} created: product {product.id}, quantity {data.quantity}, "
            f"total {total_amount}, deposit {deposit}, status {status.value}"
        )
        summary = {
            "total_amount": total_amount,
            "deposit_paid": deposit,
            "remaining_amount": remaining,
            "expected_delivery": product.expected_stock_date,
        }
        return await self.get_preorder_by_id(preorder.id), summary

    # ==================== CANCELLATION / STATUS ====================

    async def _lock_preorder(self, preorder_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> Preorder:
        stmt = (
            select(Preorder)
            .where(Preorder.id == preorder_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            stmt = stmt.where(Preorder.user_id == user_id)

        preorder = (await self.db.execute(stmt)).scalar_one_or_none()
        if preorder is None:
            raise PreorderNotFoundError(preorder_id)
        return preorder

    async def cancel_preorder(
        self,
        user_id: uuid.UUID,
        preorder_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Tuple[Preorder, Optional[dict]]:
        """
        Customer cancellation of a PENDING or CONFIRMED preorder.

        Returns the preorder and refund info when a deposit was paid.
        """
        try:
            preorder = await self._lock_preorder(preorder_id, user_id=user_id)
            previous = preorder.status

            if previous not in ACTIVE_PREORDER_STATUSES:
                raise InvalidStateTransitionError(
                    "preorder",
                    previous,
                    PreorderStatus.CANCELLED.value,
                    list(ACTIVE_PREORDER_STATUSES),
                )

            reason = reason or "Cancelled by customer"
            preorder.status = PreorderStatus.CANCELLED.value
            preorder.cancellation_reason = reason
            preorder.cancelled_at = datetime.now(timezone.utc)
            await self._release_quantity(preorder)

            self.db.add(
                PreorderStatusHistory(
                    preorder_id=preorder.id,
                    from_status=previous,
                    to_status=PreorderStatus.CANCELLED.value,
                    changed_by=user_id,
                    notes=reason,
                )
            )
            await self.db.commit()

        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Cancel of preorder {preorder_id} rejected: {e.message}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error cancelling preorder {preorder_id}: {e}")
            raise

        refund_info = None
        if preorder.deposit_paid > 0:
            refund_info = {
                "amount": preorder.deposit_paid,
                "status": "PENDING_REFUND",
                "estimated_days": REFUND_ESTIMATED_DAYS,
            }

        logger.info(f"Preorder {preorder_id} cancelled by user {user_id}")
        return await self.get_preorder_by_id(preorder_id), refund_info

    async def update_preorder_status(
        self,
        preorder_id: uuid.UUID,
        data: PreorderStatusUpdate,
        changed_by: uuid.UUID,
    ) -> Tuple[Preorder, dict]:
        """Admin status change through the preorder state machine."""
        new_status = data.status.value
        try:
            preorder = await self._lock_preorder(preorder_id)
            previous = preorder.status
            state_machine.validate_transition("preorder", previous, new_status)

            now = datetime.now(timezone.utc)
            preorder.status = new_status
            if data.tracking_number:
                preorder.tracking_number = data.tracking_number
            if data.notes:
                preorder.admin_notes = data.notes

            if new_status == PreorderStatus.SHIPPED.value:
                preorder.shipped_at = now
            elif new_status == PreorderStatus.DELIVERED.value:
                preorder.delivered_at = now
            elif new_status == PreorderStatus.CANCELLED.value:
                preorder.cancelled_at = now
                preorder.cancellation_reason = data.notes or "Cancelled by admin"

            if new_status in _RELEASING_STATUSES:
                await self._release_quantity(preorder)

            self.db.add(
                PreorderStatusHistory(
                    preorder_id=preorder.id,
                    from_status=previous,
                    to_status=new_status,
                    changed_by=changed_by,
                    notes=data.notes,
                )
            )
            await self.db.commit()

        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Status change of preorder {preorder_id} to {new_status} rejected: {e.message}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error updating preorder {preorder_id}: {e}")
            raise

        logger.info(f"Preorder {preorder_id}: {previous} -> {new_status} by {changed_by}")
        transition = {
            "from_status": previous,
            "to_status": new_status,
            "changed_by": changed_by,
            "timestamp": now,
        }
        return await self.get_preorder_by_id(preorder_id), transition
