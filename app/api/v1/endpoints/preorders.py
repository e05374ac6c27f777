from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, status, Query, Body

from app.api.deps import DB, CurrentUser, AdminUser
from app.config import settings
from app.models.preorder import PreorderStatus
from app.schemas.order import StatusHistoryResponse, TransitionRecord
from app.schemas.preorder import (
    PreorderCreate,
    PreorderCancelRequest,
    PreorderStatusUpdate,
    PreorderResponse,
    PreorderCreateResponse,
    PreorderCancelResponse,
    PreorderDetailResponse,
    PreorderListResponse,
    PreorderListSummary,
    PreorderStatusUpdateResponse,
    PreorderCalculations,
    PreorderSummary,
    RefundInfo,
)
from app.services.preorder_service import PreorderService


router = APIRouter(tags=["Preorders"])


def _build_preorder_response(preorder) -> PreorderResponse:
    return PreorderResponse.model_validate(preorder)


def _build_list_response(preorders, total, page, size, summary=None) -> PreorderListResponse:
    return PreorderListResponse(
        items=[_build_preorder_response(p) for p in preorders],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
        summary=summary,
    )


@router.post("", response_model=PreorderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_preorder(
    data: PreorderCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Place a preorder for a product that accepts them.

    The deposit is capped at the order total. A positive deposit confirms
    the preorder immediately.
    """
    preorder, summary = await PreorderService(db).create_preorder(current_user.id, data)

    return PreorderCreateResponse(
        preorder=_build_preorder_response(preorder),
        summary=PreorderSummary(**summary),
    )


@router.get("", response_model=PreorderListResponse)
async def list_my_preorders(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[PreorderStatus] = Query(None),
    product_id: Optional[uuid.UUID] = Query(None),
):
    """Get the current user's preorders with a status breakdown."""
    service = PreorderService(db)
    skip = (page - 1) * size

    preorders, total = await service.get_preorders(
        user_id=current_user.id,
        status=status,
        product_id=product_id,
        skip=skip,
        limit=size,
    )
    distribution = await service.get_status_distribution(current_user.id)

    summary = PreorderListSummary(
        total_preorders=sum(distribution.values()),
        status_distribution=distribution,
    )
    return _build_list_response(preorders, total, page, size, summary)


@router.get("/admin/all", response_model=PreorderListResponse)
async def list_all_preorders(
    db: DB,
    admin: AdminUser,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[PreorderStatus] = Query(None),
    product_id: Optional[uuid.UUID] = Query(None),
):
    """All preorders across users. Admin only."""
    skip = (page - 1) * size
    preorders, total = await PreorderService(db).get_preorders(
        status=status,
        product_id=product_id,
        skip=skip,
        limit=size,
    )
    return _build_list_response(preorders, total, page, size)


@router.get("/{preorder_id}", response_model=PreorderDetailResponse)
async def get_preorder(
    preorder_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Preorder with calculated figures and status timeline."""
    detail = await PreorderService(db).get_preorder_detail(current_user.id, preorder_id)

    return PreorderDetailResponse(
        preorder=_build_preorder_response(detail["preorder"]),
        calculations=PreorderCalculations(**detail["calculations"]),
        timeline=[StatusHistoryResponse.model_validate(h) for h in detail["timeline"]],
    )


@router.put("/{preorder_id}/cancel", response_model=PreorderCancelResponse)
async def cancel_preorder(
    preorder_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
    data: Optional[PreorderCancelRequest] = Body(None),
):
    """
    Cancel a PENDING or CONFIRMED preorder.
    When a deposit was paid the response carries the pending refund.
    """
    preorder, refund_info = await PreorderService(db).cancel_preorder(
        current_user.id,
        preorder_id,
        reason=data.reason if data else None,
    )

    return PreorderCancelResponse(
        preorder=_build_preorder_response(preorder),
        refund_info=RefundInfo(**refund_info) if refund_info else None,
    )


@router.put("/{preorder_id}/status", response_model=PreorderStatusUpdateResponse)
async def update_preorder_status(
    preorder_id: uuid.UUID,
    data: PreorderStatusUpdate,
    db: DB,
    admin: AdminUser,
):
    """Move a preorder through its lifecycle. Admin only."""
    preorder, transition = await PreorderService(db).update_preorder_status(
        preorder_id, data, changed_by=admin.id
    )

    return PreorderStatusUpdateResponse(
        preorder=_build_preorder_response(preorder),
        transition=TransitionRecord(**transition),
    )
