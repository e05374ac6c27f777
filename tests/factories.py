"""Builders for test data, written straight through the ORM."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token, get_password_hash
from app.models import (
    Address,
    CartItem,
    Cart,
    Inventory,
    Order,
    OrderItem,
    Product,
    ProductVariant,
    User,
    UserRole,
)


async def make_user(
    db: AsyncSession,
    email: str = "customer@example.com",
    role: UserRole = UserRole.CUSTOMER,
) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash("Secret123!"),
        first_name="Test",
        last_name="User",
        role=role.value,
    )
    user.cart = Cart()
    db.add(user)
    await db.commit()
    return user


async def make_product(
    db: AsyncSession,
    name: str = "Trail Runner",
    base_price: str = "21.99",
    allow_preorder: bool = False,
    preorder_price: Optional[str] = None,
    preorder_limit: Optional[int] = None,
    expected_stock_date: Optional[datetime] = None,
) -> Product:
    product = Product(
        name=name,
        base_price=Decimal(base_price),
        allow_preorder=allow_preorder,
        preorder_price=Decimal(preorder_price) if preorder_price else None,
        preorder_limit=preorder_limit,
        expected_stock_date=expected_stock_date,
    )
    db.add(product)
    await db.commit()
    return product


async def make_variant(
    db: AsyncSession,
    product: Product,
    quantity: Optional[int] = 5,
    color: str = "Black",
    size: str = "M",
    price: Optional[str] = None,
) -> ProductVariant:
    """Variant with a stock record holding `quantity`; None means no stock record."""
    variant = ProductVariant(
        product_id=product.id,
        color=color,
        size=size,
        price=Decimal(price) if price else None,
    )
    if quantity is not None:
        variant.inventory = Inventory(quantity=quantity)
    db.add(variant)
    await db.commit()
    return variant


async def make_address(db: AsyncSession, user: User, is_default: bool = True) -> Address:
    address = Address(
        user_id=user.id,
        first_name="Test",
        last_name="User",
        street_address="1 Main St",
        city="Springfield",
        state="IL",
        postal_code="62701",
        country="US",
        is_default=is_default,
    )
    db.add(address)
    await db.commit()
    return address


async def add_cart_line(
    db: AsyncSession,
    user: User,
    product: Product,
    variant: Optional[ProductVariant],
    quantity: int,
    price: str,
    is_preorder: bool = False,
) -> CartItem:
    item = CartItem(
        cart_id=user.cart.id,
        product_id=product.id,
        product_variant_id=variant.id if variant else None,
        quantity=quantity,
        price=Decimal(price),
        is_preorder=is_preorder,
    )
    db.add(item)
    await db.commit()
    return item


async def get_stock(session_factory, variant_id) -> Optional[int]:
    """Read stock through a fresh session so nothing cached is returned."""
    async with session_factory() as session:
        result = await session.execute(
            select(Inventory.quantity).where(Inventory.product_variant_id == variant_id)
        )
        return result.scalar()


async def get_total_preorders(session_factory, product_id) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(Product.total_preorders).where(Product.id == product_id)
        )
        return result.scalar()


async def count_cart_items(session_factory, cart_id) -> int:
    async with session_factory() as session:
        result = await session.execute(select(CartItem.id).where(CartItem.cart_id == cart_id))
        return len(result.all())


def auth_headers(user: User) -> dict:
    token = create_access_token(subject=user.id, additional_claims={"role": user.role})
    return {"Authorization": f"Bearer {token}"}


def future(days: int = 30) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


def past(days: int = 1) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


async def make_delivered_order(
    db: AsyncSession, user: User, product: Product, quantity: int = 1, payment_status: str = "PENDING"
) -> Order:
    """A delivered order for `product`, written directly without the checkout flow."""
    price = product.base_price
    order = Order(
        order_number=f"ORD-TEST-{uuid.uuid4().hex[:8].upper()}",
        user_id=user.id,
        status="DELIVERED",
        payment_status=payment_status,
        total_amount=price * quantity,
        delivered_at=datetime.now(timezone.utc),
        items=[
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                price=price,
                total=price * quantity,
            )
        ],
    )
    db.add(order)
    await db.commit()
    return order
