"""ORM models. Importing this package registers every table on Base.metadata."""
from app.models.user import User, UserRole
from app.models.address import Address, AddressType
from app.models.product import Product, ProductVariant, StockStatus
from app.models.inventory import Inventory
from app.models.cart import Cart, CartItem, LineItemKind, stock_affecting
from app.models.order import Order, OrderItem, OrderStatusHistory, OrderStatus, OrderType, PaymentStatus
from app.models.preorder import (
    Preorder,
    PreorderStatusHistory,
    PreorderStatus,
    ACTIVE_PREORDER_STATUSES,
)
from app.models.product_review import ProductReview
from app.models.wishlist import WishlistItem

__all__ = [
    "User",
    "UserRole",
    "Address",
    "AddressType",
    "Product",
    "ProductVariant",
    "StockStatus",
    "Inventory",
    "Cart",
    "CartItem",
    "LineItemKind",
    "stock_affecting",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "OrderStatus",
    "OrderType",
    "PaymentStatus",
    "Preorder",
    "PreorderStatusHistory",
    "PreorderStatus",
    "ACTIVE_PREORDER_STATUSES",
    "ProductReview",
    "WishlistItem",
]
