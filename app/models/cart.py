import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.product import Product, ProductVariant


class LineItemKind(str, Enum):
    """How a cart/order line is fulfilled."""
    REGULAR = "REGULAR"      # Shipped from current stock
    PREORDER = "PREORDER"    # Reserved against future stock

    @classmethod
    def of(cls, is_preorder: bool) -> "LineItemKind":
        return cls.PREORDER if is_preorder else cls.REGULAR


def stock_affecting(kind: LineItemKind, variant_id: Optional[uuid.UUID]) -> bool:
    """
    Whether a line with this kind moves the inventory ledger.

    Only regular lines bound to a concrete variant are checked against and
    deducted from stock. Preorder lines never touch inventory.
    """
    if kind is LineItemKind.REGULAR:
        return variant_id is not None
    if kind is LineItemKind.PREORDER:
        return False
    raise ValueError(f"Unknown line item kind: {kind}")


class Cart(Base):
    """One active cart per user."""
    __tablename__ = "carts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="cart")
    items: Mapped[List["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.created_at"
    )

    def __repr__(self) -> str:
        return f"<Cart(user_id={self.user_id})>"


class CartItem(Base):
    """
    Cart line. Price is captured when the line is added, not re-read at
    checkout. Lines with the same product, variant and kind are merged.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    cart_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    product_variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_preorder: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")
    product: Mapped["Product"] = relationship("Product")
    product_variant: Mapped[Optional["ProductVariant"]] = relationship("ProductVariant")

    @property
    def kind(self) -> LineItemKind:
        return LineItemKind.of(self.is_preorder)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def __repr__(self) -> str:
        return f"<CartItem(product_id={self.product_id}, quantity={self.quantity}, kind={self.kind.value})>"
