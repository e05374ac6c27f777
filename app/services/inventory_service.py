"""
Inventory Service for per-variant stock.

Holds the stock ledger primitives used by the order workflows:
- lock_for_update(): row locks on the Inventory rows being checked
- deduct(): compare-and-swap decrement that never drives quantity below zero
- restore(): increment back on cancellation

None of these commit; the caller owns the transaction.
"""
from typing import Dict, Iterable, List, Optional
import uuid
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import InsufficientStockError, VariantNotFoundError
from app.models.inventory import Inventory
from app.models.product import ProductVariant
from app.schemas.inventory import InventoryUpdate, VariantAvailability

logger = logging.getLogger(__name__)


class InventoryService:
    """Service for inventory management operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== STOCK LEDGER ====================

    async def lock_for_update(self, variant_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Inventory]:
        """
        Lock the Inventory rows of the given variants until the transaction ends.

        Rows are locked in variant id order so concurrent checkouts touching
        the same variants cannot deadlock. Variants without a stock record are
        absent from the result.
        """
        ids = sorted(set(variant_ids), key=str)
        if not ids:
            return {}

        stmt = (
            select(Inventory)
            .where(Inventory.product_variant_id.in_(ids))
            .order_by(Inventory.product_variant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return {inv.product_variant_id: inv for inv in result.scalars().all()}

    async def deduct(self, variant_id: uuid.UUID, quantity: int, product_name: str) -> None:
        """
        Decrement stock only if enough remains at the moment of the write.

        Raises:
            InsufficientStockError: the guarded UPDATE matched no row
        """
        stmt = (
            update(Inventory)
            .where(
                Inventory.product_variant_id == variant_id,
                Inventory.quantity >= quantity,
            )
            .values(quantity=Inventory.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        if result.rowcount != 1:
            available = await self.get_quantity(variant_id)
            logger.warning(
                f"Stock deduction refused for variant {variant_id}: requested {quantity}, available {available}"
            )
            raise InsufficientStockError(product_name, quantity, available)

    async def restore(self, variant_id: uuid.UUID, quantity: int) -> None:
        """Put quantity back on the shelf."""
        stmt = (
            update(Inventory)
            .where(Inventory.product_variant_id == variant_id)
            .values(quantity=Inventory.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            logger.warning(f"No stock record to restore for variant {variant_id}")

    async def get_quantity(self, variant_id: uuid.UUID) -> int:
        stmt = select(Inventory.quantity).where(Inventory.product_variant_id == variant_id)
        return (await self.db.execute(stmt)).scalar() or 0

    # ==================== QUERIES / ADMIN ====================

    async def get_inventory(self, variant_id: uuid.UUID) -> Optional[Inventory]:
        stmt = select(Inventory).where(Inventory.product_variant_id == variant_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_variant_availability(self, variant_id: uuid.UUID) -> VariantAvailability:
        """Stock view for a variant. A variant without a stock record reports zero."""
        stmt = (
            select(ProductVariant)
            .options(
                selectinload(ProductVariant.product),
                selectinload(ProductVariant.inventory),
            )
            .where(ProductVariant.id == variant_id)
            .execution_options(populate_existing=True)
        )
        variant = (await self.db.execute(stmt)).scalar_one_or_none()
        if variant is None:
            raise VariantNotFoundError(variant_id)

        return self._availability(variant)

    @staticmethod
    def _availability(variant: ProductVariant) -> VariantAvailability:
        inventory = variant.inventory
        quantity = inventory.quantity if inventory else 0
        threshold = inventory.low_stock_threshold if inventory else 10
        return VariantAvailability(
            product_variant_id=variant.id,
            product_id=variant.product_id,
            product_name=variant.product.name,
            variant_name=variant.name,
            quantity=quantity,
            low_stock_threshold=threshold,
            is_low_stock=quantity <= threshold,
            is_in_stock=quantity > 0,
        )

    async def upsert_inventory(self, variant_id: uuid.UUID, data: InventoryUpdate) -> Inventory:
        """Set quantity and/or threshold, creating the stock record if needed."""
        variant = await self.db.get(ProductVariant, variant_id)
        if variant is None:
            raise VariantNotFoundError(variant_id)

        inventory = await self.get_inventory(variant_id)
        if inventory is None:
            inventory = Inventory(product_variant_id=variant_id, quantity=0, reserved_quantity=0)
            self.db.add(inventory)

        update_data = data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            if value is not None:
                setattr(inventory, key, value)

        await self.db.commit()
        await self.db.refresh(inventory)
        logger.info(f"Inventory for variant {variant_id} set to {inventory.quantity}")
        return inventory

    async def get_low_stock(self) -> List[VariantAvailability]:
        """Variants at or below their low-stock threshold, lowest first."""
        stmt = (
            select(Inventory)
            .options(
                selectinload(Inventory.variant).selectinload(ProductVariant.product),
            )
            .where(Inventory.quantity <= Inventory.low_stock_threshold)
            .order_by(Inventory.quantity.asc())
        )
        result = await self.db.execute(stmt)

        items = []
        for inventory in result.scalars().all():
            variant = inventory.variant
            items.append(
                VariantAvailability(
                    product_variant_id=variant.id,
                    product_id=variant.product_id,
                    product_name=variant.product.name,
                    variant_name=variant.name,
                    quantity=inventory.quantity,
                    low_stock_threshold=inventory.low_stock_threshold,
                    is_low_stock=True,
                    is_in_stock=inventory.quantity > 0,
                )
            )
        return items
