from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, status, Query, Body

from app.api.deps import DB, CurrentUser, AdminUser
from app.config import settings
from app.core.exceptions import OrderNotFoundError
from app.models.order import OrderStatus
from app.schemas.order import (
    OrderCreate,
    OrderCancelRequest,
    OrderStatusUpdate,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderStatusView,
    OrderStatusUpdateResponse,
    TransitionRecord,
)
from app.services.order_service import OrderService


router = APIRouter(tags=["Orders"])


def _build_order_response(order) -> OrderResponse:
    return OrderResponse.model_validate(order)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Place an order from the current cart.

    Regular lines are checked against and deducted from stock; the cart is
    emptied. Fails with 400 on an empty cart or insufficient stock.
    """
    order = await OrderService(db).create_order(current_user.id, data)
    return _build_order_response(order)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[OrderStatus] = Query(None),
):
    """Get the current user's orders, newest first."""
    service = OrderService(db)
    skip = (page - 1) * size

    orders, total = await service.get_orders(current_user.id, status=status, skip=skip, limit=size)

    return OrderListResponse(
        items=[_build_order_response(o) for o in orders],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Get order details with status history."""
    order = await OrderService(db).get_order_by_id(
        order_id, user_id=current_user.id, include_history=True
    )

    if not order:
        raise OrderNotFoundError(order_id)

    return OrderDetailResponse.model_validate(order)


@router.get("/{order_id}/status", response_model=OrderStatusView)
async def get_order_status(
    order_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    return await OrderService(db).get_order_status(current_user.id, order_id)


@router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
    data: Optional[OrderCancelRequest] = Body(None),
):
    """
    Cancel an order in PENDING or CONFIRMED status.
    Stock taken by regular lines is restored.
    """
    order = await OrderService(db).cancel_order(
        current_user.id,
        order_id,
        reason=data.reason if data else None,
    )
    return _build_order_response(order)


@router.put("/{order_id}/status", response_model=OrderStatusUpdateResponse)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    db: DB,
    admin: AdminUser,
):
    """
    Move an order through its lifecycle. Admin only.
    """
    order, transition = await OrderService(db).update_order_status(order_id, data, changed_by=admin.id)

    return OrderStatusUpdateResponse(
        order=_build_order_response(order),
        transition=TransitionRecord(**transition),
    )
