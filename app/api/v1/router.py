from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Access
    auth,
    addresses,
    users,
    # Catalog
    products,
    inventory,
    # Checkout
    cart,
    orders,
    preorders,
    # Engagement
    reviews,
    wishlist,
)

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access ====================
api_router.include_router(auth.router, prefix="/auth")
api_router.include_router(addresses.router, prefix="/addresses")
api_router.include_router(users.router, prefix="/users")

# ==================== Catalog ====================
api_router.include_router(products.router, prefix="/products")
api_router.include_router(inventory.router, prefix="/inventory")

# ==================== Checkout ====================
api_router.include_router(cart.router, prefix="/cart")
api_router.include_router(orders.router, prefix="/orders")
api_router.include_router(preorders.router, prefix="/preorders")

# ==================== Engagement ====================
api_router.include_router(reviews.router, prefix="/reviews")
api_router.include_router(wishlist.router, prefix="/wishlist")
