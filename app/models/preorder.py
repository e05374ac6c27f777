"""
Preorder models.

A preorder reserves future stock of a product without touching inventory.
At most one active (PENDING or CONFIRMED) preorder may exist per user,
product and variant; a partial unique index enforces this at the store.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Numeric, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.address import Address
    from app.models.product import Product, ProductVariant


class PreorderStatus(str, Enum):
    """Preorder status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    READY = "READY"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


ACTIVE_PREORDER_STATUSES = (PreorderStatus.PENDING.value, PreorderStatus.CONFIRMED.value)

_ACTIVE_PREDICATE = text("status IN ('PENDING', 'CONFIRMED')")


class Preorder(Base):
    """Customer preorder against a product's future stock."""
    __tablename__ = "preorders"
    __table_args__ = (
        Index(
            'uq_preorder_active_user_product_variant',
            'user_id', 'product_id', 'product_variant_id',
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        CheckConstraint("quantity >= 1", name="ck_preorder_quantity_positive"),
        Index('ix_preorders_product_status', 'product_id', 'status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    product_variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("product_variants.id", ondelete="SET NULL"),
        nullable=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Unit price captured at placement"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=PreorderStatus.PENDING.value,
        nullable=False,
        comment="PENDING, CONFIRMED, READY, SHIPPED, DELIVERED, CANCELLED, EXPIRED"
    )

    # Payment split
    deposit_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)

    expected_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    shipping_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("addresses.id", ondelete="SET NULL"),
        nullable=True
    )
    notify_when_ready: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Fulfillment / admin
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
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
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User")
    product: Mapped["Product"] = relationship("Product")
    product_variant: Mapped[Optional["ProductVariant"]] = relationship("ProductVariant")
    shipping_address: Mapped[Optional["Address"]] = relationship("Address")
    status_history: Mapped[List["PreorderStatusHistory"]] = relationship(
        "PreorderStatusHistory",
        back_populates="preorder",
        cascade="all, delete-orphan",
        order_by="PreorderStatusHistory.created_at"
    )

    @property
    def total_amount(self) -> Decimal:
        return self.price * self.quantity

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_PREORDER_STATUSES

    def __repr__(self) -> str:
        return f"<Preorder(product_id={self.product_id}, quantity={self.quantity}, status='{self.status}')>"


class PreorderStatusHistory(Base):
    """Append-only audit row for every accepted preorder status transition."""
    __tablename__ = "preorder_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    preorder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("preorders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    from_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    preorder: Mapped["Preorder"] = relationship("Preorder", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<PreorderStatusHistory({self.from_status} -> {self.to_status})>"
