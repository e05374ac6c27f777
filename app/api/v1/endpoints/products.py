from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, status, Query

from app.api.deps import DB, AdminUser
from app.config import settings
from app.core.exceptions import ProductNotFoundError
from app.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductDetailResponse,
    ProductListResponse,
    VariantCreate,
    VariantResponse,
)
from app.services.product_service import ProductService


router = APIRouter(tags=["Products"])


@router.get("", response_model=ProductListResponse)
async def list_products(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Search by name, SKU or description"),
    allow_preorder: Optional[bool] = Query(None),
):
    """Get paginated list of active products."""
    service = ProductService(db)
    skip = (page - 1) * size

    products, total = await service.get_products(
        search=search,
        allow_preorder=allow_preorder,
        skip=skip,
        limit=size,
    )

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(product_id: uuid.UUID, db: DB):
    """Get product with its variants and stock."""
    product = await ProductService(db).get_product_by_id(product_id, include_variants=True)

    if not product or not product.is_active:
        raise ProductNotFoundError(product_id)

    return product


@router.post("", response_model=ProductDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_product(data: ProductCreate, db: DB, admin: AdminUser):
    """Create a product, including its preorder settings. Admin only."""
    return await ProductService(db).create_product(data)


@router.put("/{product_id}", response_model=ProductDetailResponse)
async def update_product(
    product_id: uuid.UUID,
    data: ProductUpdate,
    db: DB,
    admin: AdminUser,
):
    """Update a product. Admin only."""
    product = await ProductService(db).update_product(product_id, data)

    if not product:
        raise ProductNotFoundError(product_id)

    return product


@router.post(
    "/{product_id}/variants",
    response_model=VariantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_variant(
    product_id: uuid.UUID,
    data: VariantCreate,
    db: DB,
    admin: AdminUser,
):
    """Add a variant with its opening stock. Admin only."""
    service = ProductService(db)
    if not await service.get_product_by_id(product_id):
        raise ProductNotFoundError(product_id)

    return await service.add_product_variant(product_id, data)
