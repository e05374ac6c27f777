# Services module
from app.services.auth_service import AuthService
from app.services.address_service import AddressService
from app.services.product_service import ProductService
from app.services.inventory_service import InventoryService
from app.services.cart_service import CartService
from app.services.order_service import OrderService
from app.services.preorder_service import PreorderService
from app.services.review_service import ReviewService
from app.services.wishlist_service import WishlistService

__all__ = [
    "AuthService",
    "AddressService",
    "ProductService",
    "InventoryService",
    "CartService",
    "OrderService",
    "PreorderService",
    "ReviewService",
    "WishlistService",
]
