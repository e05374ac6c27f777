"""
Cart Service

One cart per user. Lines capture their unit price when added; a line is
identified by product, variant and kind, and re-adding merges quantities.
"""
from decimal import Decimal
from typing import Optional
import uuid
import logging

from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    CartItemNotFoundError,
    InsufficientStockError,
    PreorderNotAllowedError,
    ProductNotFoundError,
    VariantNotFoundError,
)
from app.models.cart import Cart, CartItem, LineItemKind, stock_affecting
from app.models.product import Product, ProductVariant
from app.schemas.cart import CartItemAdd, CartItemUpdate

logger = logging.getLogger(__name__)


class CartService:
    """Service for the shopping cart."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _cart_query(self):
        return (
            select(Cart)
            .options(
                selectinload(Cart.items).selectinload(CartItem.product),
                selectinload(Cart.items)
                .selectinload(CartItem.product_variant)
                .selectinload(ProductVariant.inventory),
            )
            .execution_options(populate_existing=True)
        )

    async def get_cart(self, user_id: uuid.UUID) -> Optional[Cart]:
        result = await self.db.execute(self._cart_query().where(Cart.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_or_create_cart(self, user_id: uuid.UUID) -> Cart:
        cart = await self.get_cart(user_id)
        if cart is None:
            self.db.add(Cart(user_id=user_id))
            await self.db.commit()
            cart = await self.get_cart(user_id)
        return cart

    # ==================== VIEW ====================

    @staticmethod
    def _item_view(item: CartItem) -> dict:
        return {
            "id": item.id,
            "product_id": item.product_id,
            "product_variant_id": item.product_variant_id,
            "product_name": item.product.name,
            "variant_name": item.product_variant.name if item.product_variant else None,
            "quantity": item.quantity,
            "price": item.price,
            "line_total": item.line_total,
            "is_preorder": item.is_preorder,
            "created_at": item.created_at,
        }

    async def get_cart_view(self, user_id: uuid.UUID) -> dict:
        """Cart split into regular and preorder lines with subtotals."""
        cart = await self.get_or_create_cart(user_id)

        regular = [i for i in cart.items if i.kind is LineItemKind.REGULAR]
        preorder = [i for i in cart.items if i.kind is LineItemKind.PREORDER]

        regular_subtotal = sum((i.line_total for i in regular), Decimal("0"))
        preorder_subtotal = sum((i.line_total for i in preorder), Decimal("0"))
        regular_count = sum(i.quantity for i in regular)
        preorder_count = sum(i.quantity for i in preorder)

        return {
            "id": cart.id,
            "regular_items": [self._item_view(i) for i in regular],
            "preorder_items": [self._item_view(i) for i in preorder],
            "summary": {
                "regular_items": regular_count,
                "preorder_items": preorder_count,
                "total_items": regular_count + preorder_count,
                "regular_subtotal": regular_subtotal,
                "preorder_subtotal": preorder_subtotal,
                "total": regular_subtotal + preorder_subtotal,
            },
        }

    # ==================== MUTATIONS ====================

    @staticmethod
    def _check_stock(
        kind: LineItemKind,
        product: Product,
        variant: Optional[ProductVariant],
        quantity: int,
    ) -> None:
        if not stock_affecting(kind, variant.id if variant else None):
            return
        available = variant.inventory.quantity if variant.inventory else 0
        if available < quantity:
            logger.warning(f"Cart add refused for {product.name}: requested {quantity}, available {available}")
            raise InsufficientStockError(product.name, quantity, available)

    async def add_item(self, user_id: uuid.UUID, data: CartItemAdd) -> CartItem:
        """
        Add a line or merge into the matching one.

        Price is the variant price, else the product base price; preorder
        lines use the product preorder price when one is set.
        """
        product = await self.db.get(Product, data.product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundError(data.product_id)

        kind = LineItemKind.of(data.is_preorder)
        variant = None
        price = product.base_price

        if data.product_variant_id:
            stmt = (
                select(ProductVariant)
                .options(selectinload(ProductVariant.inventory))
                .where(
                    ProductVariant.id == data.product_variant_id,
                    ProductVariant.product_id == product.id,
                    ProductVariant.is_active.is_(True),
                )
                .execution_options(populate_existing=True)
            )
            variant = (await self.db.execute(stmt)).scalar_one_or_none()
            if variant is None:
                raise VariantNotFoundError(data.product_variant_id)
            if variant.price is not None:
                price = variant.price

        if kind is LineItemKind.PREORDER:
            if not product.allow_preorder:
                raise PreorderNotAllowedError(product.id)
            if product.preorder_price is not None:
                price = product.preorder_price

        cart = await self.get_or_create_cart(user_id)

        existing = next(
            (
                i for i in cart.items
                if i.product_id == product.id
                and i.product_variant_id == (variant.id if variant else None)
                and i.kind is kind
            ),
            None,
        )

        if existing:
            new_quantity = existing.quantity + data.quantity
            self._check_stock(kind, product, variant, new_quantity)
            existing.quantity = new_quantity
            item = existing
        else:
            self._check_stock(kind, product, variant, data.quantity)
            item = CartItem(
                cart_id=cart.id,
                product_id=product.id,
                product_variant_id=variant.id if variant else None,
                quantity=data.quantity,
                price=price,
                is_preorder=data.is_preorder,
            )
            self.db.add(item)

        await self.db.commit()
        return await self._get_item(cart.id, item.id)

    async def _get_item(self, cart_id: uuid.UUID, item_id: uuid.UUID) -> Optional[CartItem]:
        stmt = (
            select(CartItem)
            .options(
                selectinload(CartItem.product),
                selectinload(CartItem.product_variant).selectinload(ProductVariant.inventory),
            )
            .where(CartItem.id == item_id, CartItem.cart_id == cart_id)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _get_owned_item(self, user_id: uuid.UUID, item_id: uuid.UUID) -> CartItem:
        cart = await self.get_cart(user_id)
        item = await self._get_item(cart.id, item_id) if cart else None
        if item is None:
            raise CartItemNotFoundError(item_id)
        return item

    async def update_item(self, user_id: uuid.UUID, item_id: uuid.UUID, data: CartItemUpdate) -> CartItem:
        item = await self._get_owned_item(user_id, item_id)
        self._check_stock(item.kind, item.product, item.product_variant, data.quantity)
        item.quantity = data.quantity
        await self.db.commit()
        return await self._get_item(item.cart_id, item.id)

    async def remove_item(self, user_id: uuid.UUID, item_id: uuid.UUID) -> None:
        item = await self._get_owned_item(user_id, item_id)
        await self.db.delete(item)
        await self.db.commit()

    async def clear_cart(self, user_id: uuid.UUID) -> None:
        cart = await self.get_cart(user_id)
        if cart is None:
            return
        await self.db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
        await self.db.commit()
