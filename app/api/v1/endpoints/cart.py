import uuid

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser
from app.schemas.cart import CartItemAdd, CartItemUpdate, CartItemResponse, CartResponse
from app.services.cart_service import CartService


router = APIRouter(tags=["Cart"])


def _build_item_response(item) -> CartItemResponse:
    return CartItemResponse(
        id=item.id,
        product_id=item.product_id,
        product_variant_id=item.product_variant_id,
        product_name=item.product.name,
        variant_name=item.product_variant.name if item.product_variant else None,
        quantity=item.quantity,
        price=item.price,
        line_total=item.line_total,
        is_preorder=item.is_preorder,
        created_at=item.created_at,
    )


@router.get("", response_model=CartResponse)
async def get_cart(db: DB, current_user: CurrentUser):
    """Get the cart split into regular and preorder lines, with totals."""
    return await CartService(db).get_cart_view(current_user.id)


@router.post("/items", response_model=CartItemResponse, status_code=status.HTTP_201_CREATED)
async def add_cart_item(data: CartItemAdd, db: DB, current_user: CurrentUser):
    """
    Add a product to the cart.
    Adding the same product, variant and kind again increases the quantity.
    """
    item = await CartService(db).add_item(current_user.id, data)
    return _build_item_response(item)


@router.put("/items/{item_id}", response_model=CartItemResponse)
async def update_cart_item(
    item_id: uuid.UUID,
    data: CartItemUpdate,
    db: DB,
    current_user: CurrentUser,
):
    item = await CartService(db).update_item(current_user.id, item_id, data)
    return _build_item_response(item)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_cart_item(item_id: uuid.UUID, db: DB, current_user: CurrentUser):
    await CartService(db).remove_item(current_user.id, item_id)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(db: DB, current_user: CurrentUser):
    await CartService(db).clear_cart(current_user.id)
