"""
Typed business-rule failures raised by the commerce services.

Every error carries a human-readable message plus a ``details`` dict with the
context a client needs to react programmatically (remaining capacity, current
status, valid next states, ...). ``status_code`` is the HTTP status the API
layer answers with.
"""
from typing import Any, Dict, List, Optional


class CommerceError(Exception):
    """Base exception for storefront business-rule failures."""
    status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(CommerceError):
    """A referenced record does not exist or is not visible to the caller."""
    status_code = 404


class DuplicateResourceError(CommerceError):
    """The record already exists."""
    status_code = 409


# ==================== CART / ORDER ====================

class EmptyCartError(CommerceError):
    def __init__(self):
        super().__init__("Cart is empty")


class InsufficientStockError(CommerceError):
    def __init__(self, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_name}",
            {"product": product_name, "requested": requested, "available": available},
        )


class CartItemNotFoundError(ResourceNotFoundError):
    def __init__(self, item_id):
        super().__init__("Cart item not found", {"item_id": str(item_id)})


class OrderNotFoundError(ResourceNotFoundError):
    def __init__(self, order_id):
        super().__init__("Order not found", {"order_id": str(order_id)})


class AddressNotFoundError(ResourceNotFoundError):
    def __init__(self, address_id):
        super().__init__(
            "Address not found or not accessible",
            {"address_id": str(address_id)},
        )


# ==================== CATALOG ====================

class ProductNotFoundError(ResourceNotFoundError):
    def __init__(self, product_id):
        super().__init__("Product not found", {"product_id": str(product_id)})


class VariantNotFoundError(ResourceNotFoundError):
    def __init__(self, variant_id):
        super().__init__(
            "Product variant not found or not available",
            {"variant_id": str(variant_id)},
        )


# ==================== PREORDER ====================

class PreorderNotAllowedError(CommerceError):
    status_code = 404

    def __init__(self, product_id):
        super().__init__(
            "Product not found or preorder not allowed for this product",
            {"product_id": str(product_id)},
        )


class PreorderWindowClosedError(CommerceError):
    def __init__(self, expected_stock_date):
        super().__init__(
            "Preorder window has closed for this product",
            {"expected_stock_date": expected_stock_date.isoformat() if expected_stock_date else None},
        )


class PreorderLimitExceededError(CommerceError):
    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Preorder limit exceeded. Only {available} items available for preorder",
            {"available": available, "requested": requested},
        )


class DuplicatePreorderError(DuplicateResourceError):
    def __init__(self, existing_preorder_id=None):
        super().__init__(
            "You already have an active preorder for this product/variant",
            {"existing_preorder_id": str(existing_preorder_id) if existing_preorder_id else None},
        )


class PreorderNotFoundError(ResourceNotFoundError):
    def __init__(self, preorder_id):
        super().__init__("Preorder not found", {"preorder_id": str(preorder_id)})


# ==================== LIFECYCLE ====================

class InvalidStateTransitionError(CommerceError):
    def __init__(
        self,
        entity: str,
        current_status: str,
        requested_status: str,
        allowed: List[str],
    ):
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = allowed
        if allowed:
            message = (
                f"Cannot change {entity} from '{current_status}' to '{requested_status}'. "
                f"Allowed transitions: {', '.join(allowed)}"
            )
        else:
            message = f"{entity.capitalize()} in '{current_status}' status cannot be modified. This is a terminal state."
        super().__init__(
            message,
            {
                "current_status": current_status,
                "requested_status": requested_status,
                "valid_transitions": allowed,
            },
        )


# ==================== REVIEWS ====================

class ReviewNotAllowedError(CommerceError):
    pass
