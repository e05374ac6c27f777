import uuid

from fastapi import APIRouter

from app.api.deps import DB, AdminUser
from app.schemas.inventory import (
    InventoryUpdate,
    InventoryResponse,
    LowStockResponse,
    VariantAvailability,
)
from app.services.inventory_service import InventoryService


router = APIRouter(tags=["Inventory"])


@router.get("/low-stock", response_model=LowStockResponse)
async def get_low_stock(db: DB, admin: AdminUser):
    """Variants at or below their low-stock threshold. Admin only."""
    items = await InventoryService(db).get_low_stock()
    return LowStockResponse(items=items, total=len(items))


@router.get("/variants/{variant_id}", response_model=VariantAvailability)
async def get_variant_availability(variant_id: uuid.UUID, db: DB):
    """Stock availability for a variant."""
    return await InventoryService(db).get_variant_availability(variant_id)


@router.put("/variants/{variant_id}", response_model=InventoryResponse)
async def update_variant_inventory(
    variant_id: uuid.UUID,
    data: InventoryUpdate,
    db: DB,
    admin: AdminUser,
):
    """Set stock quantity and/or low-stock threshold. Admin only."""
    return await InventoryService(db).upsert_inventory(variant_id, data)
