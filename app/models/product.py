import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base

if TYPE_CHECKING:
    from app.models.inventory import Inventory


class StockStatus(str, Enum):
    """Catalog-facing stock status."""
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    DISCONTINUED = "DISCONTINUED"
    PREORDER_ONLY = "PREORDER_ONLY"


class Product(Base):
    """
    Product model for the storefront catalog.
    Carries the preorder policy (window, cap, price) for the product.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)

    # Pricing
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    stock_status: Mapped[str] = mapped_column(
        String(30),
        default=StockStatus.IN_STOCK.value,
        nullable=False,
        comment="IN_STOCK, LOW_STOCK, OUT_OF_STOCK, DISCONTINUED, PREORDER_ONLY"
    )

    # Preorder policy
    allow_preorder: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    preorder_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    preorder_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    expected_stock_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    total_preorders: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Running quantity of preorders placed and not released"
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

    # Relationships
    variants: Mapped[List["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan"
    )

    @property
    def effective_preorder_price(self) -> Decimal:
        """Unit price charged for preorders."""
        return self.preorder_price if self.preorder_price is not None else self.base_price

    def __repr__(self) -> str:
        return f"<Product(name='{self.name}', sku='{self.sku}')>"


class ProductVariant(Base):
    """Color/size combination of a product with its own price override and stock."""
    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint('product_id', 'color', 'size', name='uq_variant_product_color_size'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    sku: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Overrides product.base_price when set
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    stock_status: Mapped[str] = mapped_column(
        String(30),
        default=StockStatus.IN_STOCK.value,
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

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="variants")
    inventory: Mapped[Optional["Inventory"]] = relationship(
        "Inventory",
        back_populates="variant",
        uselist=False,
        cascade="all, delete-orphan"
    )

    @property
    def name(self) -> str:
        parts = [p for p in (self.color, self.size) if p]
        return " / ".join(parts) if parts else "Default"

    def __repr__(self) -> str:
        return f"<ProductVariant(product_id={self.product_id}, name='{self.name}')>"
