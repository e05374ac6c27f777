from decimal import Decimal

import pytest

from app.core.exceptions import (
    CartItemNotFoundError,
    InsufficientStockError,
    PreorderNotAllowedError,
    ProductNotFoundError,
    VariantNotFoundError,
)
from app.schemas.cart import CartItemAdd, CartItemUpdate
from app.services.cart_service import CartService

from tests.factories import make_product, make_variant


async def add(session_factory, user, product, variant=None, quantity=1, is_preorder=False):
    async with session_factory() as session:
        return await CartService(session).add_item(
            user.id,
            CartItemAdd(
                product_id=product.id,
                product_variant_id=variant.id if variant else None,
                quantity=quantity,
                is_preorder=is_preorder,
            ),
        )


async def view(session_factory, user):
    async with session_factory() as session:
        return await CartService(session).get_cart_view(user.id)


class TestAddItem:
    async def test_variant_price_wins(self, db, session_factory, customer):
        product = await make_product(db, base_price="21.99")
        variant = await make_variant(db, product, price="24.99")

        item = await add(session_factory, customer, product, variant, quantity=2)

        assert item.price == Decimal("24.99")
        assert item.line_total == Decimal("49.98")

    async def test_base_price_without_variant_price(self, db, session_factory, customer):
        product = await make_product(db, base_price="21.99")
        variant = await make_variant(db, product)
        item = await add(session_factory, customer, product, variant)
        assert item.price == Decimal("21.99")

    async def test_re_adding_merges(self, db, session_factory, customer):
        product = await make_product(db)
        variant = await make_variant(db, product, quantity=5)

        first = await add(session_factory, customer, product, variant, quantity=2)
        second = await add(session_factory, customer, product, variant, quantity=3)

        assert second.id == first.id
        assert second.quantity == 5

    async def test_merge_is_checked_against_stock(self, db, session_factory, customer):
        product = await make_product(db)
        variant = await make_variant(db, product, quantity=5)
        await add(session_factory, customer, product, variant, quantity=4)

        with pytest.raises(InsufficientStockError) as exc_info:
            await add(session_factory, customer, product, variant, quantity=2)
        assert exc_info.value.details["requested"] == 6

    async def test_regular_and_preorder_lines_are_separate(self, db, session_factory, customer):
        product = await make_product(db, allow_preorder=True, preorder_price="18.00")
        variant = await make_variant(db, product, quantity=1)

        regular = await add(session_factory, customer, product, variant)
        preorder = await add(session_factory, customer, product, variant, quantity=3, is_preorder=True)

        assert regular.id != preorder.id
        assert preorder.price == Decimal("18.00")

        cart = await view(session_factory, customer)
        assert len(cart["regular_items"]) == 1
        assert len(cart["preorder_items"]) == 1
        assert cart["summary"]["regular_items"] == 1
        assert cart["summary"]["preorder_items"] == 3
        assert cart["summary"]["total_items"] == 4
        assert cart["summary"]["regular_subtotal"] == Decimal("21.99")
        assert cart["summary"]["preorder_subtotal"] == Decimal("54.00")
        assert cart["summary"]["total"] == Decimal("75.99")

    async def test_preorder_line_ignores_stock(self, db, session_factory, customer):
        product = await make_product(db, allow_preorder=True)
        variant = await make_variant(db, product, quantity=0)
        item = await add(session_factory, customer, product, variant, quantity=10, is_preorder=True)
        assert item.is_preorder is True

    async def test_preorder_line_needs_preorder_product(self, db, session_factory, customer):
        product = await make_product(db, allow_preorder=False)
        with pytest.raises(PreorderNotAllowedError):
            await add(session_factory, customer, product, is_preorder=True)

    async def test_out_of_stock(self, db, session_factory, customer):
        product = await make_product(db)
        variant = await make_variant(db, product, quantity=None)
        with pytest.raises(InsufficientStockError):
            await add(session_factory, customer, product, variant)

    async def test_inactive_product(self, db, session_factory, customer):
        product = await make_product(db)
        product.is_active = False
        await db.commit()
        with pytest.raises(ProductNotFoundError):
            await add(session_factory, customer, product)

    async def test_variant_must_belong_to_product(self, db, session_factory, customer):
        product = await make_product(db)
        other = await make_product(db, name="Other")
        variant = await make_variant(db, other)
        with pytest.raises(VariantNotFoundError):
            await add(session_factory, customer, product, variant)


class TestCartLines:
    async def test_update_and_remove(self, db, session_factory, customer):
        product = await make_product(db)
        variant = await make_variant(db, product, quantity=5)
        item = await add(session_factory, customer, product, variant)

        async with session_factory() as session:
            updated = await CartService(session).update_item(customer.id, item.id, CartItemUpdate(quantity=4))
        assert updated.quantity == 4

        with pytest.raises(InsufficientStockError):
            async with session_factory() as session:
                await CartService(session).update_item(customer.id, item.id, CartItemUpdate(quantity=6))

        async with session_factory() as session:
            await CartService(session).remove_item(customer.id, item.id)
        cart = await view(session_factory, customer)
        assert cart["regular_items"] == []
        assert cart["summary"]["total"] == Decimal("0")

    async def test_lines_of_other_users_are_invisible(self, db, session_factory, customer, other_customer):
        product = await make_product(db)
        variant = await make_variant(db, product)
        item = await add(session_factory, customer, product, variant)

        with pytest.raises(CartItemNotFoundError):
            async with session_factory() as session:
                await CartService(session).remove_item(other_customer.id, item.id)

    async def test_clear(self, db, session_factory, customer):
        product = await make_product(db)
        await add(session_factory, customer, product, quantity=2)
        await add(session_factory, customer, product, await make_variant(db, product))

        async with session_factory() as session:
            await CartService(session).clear_cart(customer.id)
        cart = await view(session_factory, customer)
        assert cart["summary"]["total_items"] == 0
