from typing import List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func, or_, and_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import DuplicateResourceError
from app.models.product import Product, ProductVariant
from app.models.inventory import Inventory
from app.schemas.product import ProductCreate, ProductUpdate, VariantCreate

logger = logging.getLogger(__name__)


class ProductService:
    """Service for managing the catalog: products, variants and their preorder settings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_products(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = True,
        allow_preorder: Optional[bool] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Product], int]:
        """Get products with filters."""
        stmt = select(Product)

        filters = []

        if is_active is not None:
            filters.append(Product.is_active == is_active)

        if allow_preorder is not None:
            filters.append(Product.allow_preorder == allow_preorder)

        if search:
            search_filter = f"%{search}%"
            filters.append(
                or_(
                    Product.name.ilike(search_filter),
                    Product.sku.ilike(search_filter),
                    Product.description.ilike(search_filter),
                )
            )

        if filters:
            stmt = stmt.where(and_(*filters))

        count_stmt = select(func.count(Product.id))
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar()

        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_product_by_id(
        self,
        product_id: uuid.UUID,
        include_variants: bool = False,
    ) -> Optional[Product]:
        """Get product by ID."""
        stmt = select(Product).where(Product.id == product_id)

        if include_variants:
            stmt = stmt.options(
                selectinload(Product.variants).selectinload(ProductVariant.inventory)
            ).execution_options(populate_existing=True)

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_variant_by_id(self, variant_id: uuid.UUID) -> Optional[ProductVariant]:
        stmt = (
            select(ProductVariant)
            .options(
                selectinload(ProductVariant.product),
                selectinload(ProductVariant.inventory),
            )
            .where(ProductVariant.id == variant_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_product(self, data: ProductCreate) -> Product:
        """Create a new product."""
        product_data = data.model_dump()
        product_data["stock_status"] = data.stock_status.value
        product = Product(**product_data)
        self.db.add(product)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateResourceError("Product SKU already exists", {"sku": data.sku})

        logger.info(f"Created product {product.id} ({product.name})")
        return await self.get_product_by_id(product.id, include_variants=True)

    async def update_product(
        self,
        product_id: uuid.UUID,
        data: ProductUpdate
    ) -> Optional[Product]:
        """Update a product, including its preorder settings."""
        product = await self.get_product_by_id(product_id)
        if not product:
            return None

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("stock_status") is not None:
            update_data["stock_status"] = update_data["stock_status"].value

        for key, value in update_data.items():
            setattr(product, key, value)

        await self.db.commit()
        return await self.get_product_by_id(product_id, include_variants=True)

    async def add_product_variant(
        self,
        product_id: uuid.UUID,
        data: VariantCreate
    ) -> ProductVariant:
        """Add a variant to a product together with its stock record."""
        variant = ProductVariant(
            product_id=product_id,
            **data.model_dump(exclude={"initial_quantity", "low_stock_threshold"}),
        )
        variant.inventory = Inventory(
            quantity=data.initial_quantity,
            low_stock_threshold=data.low_stock_threshold,
        )
        self.db.add(variant)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateResourceError(
                "Variant already exists for this product",
                {"color": data.color, "size": data.size, "sku": data.sku},
            )

        return await self.get_variant_by_id(variant.id)
