from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser
from app.schemas.auth import UserResponse
from app.schemas.order import OrderResponse
from app.schemas.user import (
    OrderSummaryResponse,
    ProfileUpdate,
    ProfileUpdateResponse,
    WishlistSummaryResponse,
)
from app.schemas.wishlist import WishlistItemResponse
from app.services.user_service import UserService

router = APIRouter(tags=["Users"])


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: CurrentUser):
    return current_user


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(data: ProfileUpdate, db: DB, current_user: CurrentUser):
    """Update first name, last name or phone."""
    user = await UserService(db).update_profile(current_user, data)
    return ProfileUpdateResponse(
        message="Profile updated successfully",
        user=UserResponse.model_validate(user),
    )


@router.delete("/account", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(db: DB, current_user: CurrentUser):
    """
    Deactivate the caller's account.
    Tokens issued earlier stop working.
    """
    await UserService(db).deactivate_account(current_user)


@router.get("/orders/summary", response_model=OrderSummaryResponse)
async def get_order_summary(db: DB, current_user: CurrentUser):
    total, total_spent, recent = await UserService(db).get_order_summary(current_user.id)
    return OrderSummaryResponse(
        total_orders=total,
        total_spent=total_spent,
        recent_orders=[OrderResponse.model_validate(o) for o in recent],
    )


@router.get("/wishlist/summary", response_model=WishlistSummaryResponse)
async def get_wishlist_summary(db: DB, current_user: CurrentUser):
    count, recent = await UserService(db).get_wishlist_summary(current_user.id)
    return WishlistSummaryResponse(
        wishlist_count=count,
        recent_wishlist=[WishlistItemResponse.model_validate(i) for i in recent],
    )
