import uuid

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser
from app.schemas.wishlist import WishlistAdd, WishlistItemResponse, WishlistResponse
from app.services.wishlist_service import WishlistService


router = APIRouter(tags=["Wishlist"])


@router.get("", response_model=WishlistResponse)
async def get_wishlist(db: DB, current_user: CurrentUser):
    items = await WishlistService(db).get_items(current_user.id)
    return WishlistResponse(
        items=[WishlistItemResponse.model_validate(i) for i in items],
        total=len(items),
    )


@router.post("/items", response_model=WishlistItemResponse, status_code=status.HTTP_201_CREATED)
async def add_to_wishlist(data: WishlistAdd, db: DB, current_user: CurrentUser):
    """Save a product. Each product can be saved once."""
    return await WishlistService(db).add_item(current_user.id, data.product_id)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_wishlist_item(item_id: uuid.UUID, db: DB, current_user: CurrentUser):
    await WishlistService(db).remove_item(current_user.id, item_id)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_wishlist_product(product_id: uuid.UUID, db: DB, current_user: CurrentUser):
    await WishlistService(db).remove_product(current_user.id, product_id)
