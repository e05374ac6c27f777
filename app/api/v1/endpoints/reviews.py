import uuid

from fastapi import APIRouter, status, Query

from app.api.deps import DB, CurrentUser
from app.schemas.review import ReviewCreate, ReviewUpdate, ReviewResponse, ProductReviewsResponse
from app.services.review_service import ReviewService


router = APIRouter(tags=["Reviews"])


@router.get("/products/{product_id}", response_model=ProductReviewsResponse)
async def get_product_reviews(
    product_id: uuid.UUID,
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
):
    """Reviews for a product with the average rating."""
    reviews, total, average = await ReviewService(db).get_product_reviews(
        product_id, skip=(page - 1) * size, limit=size
    )
    return ProductReviewsResponse(
        items=[ReviewResponse.model_validate(r) for r in reviews],
        total=total,
        average_rating=average,
    )


@router.post(
    "/products/{product_id}",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    product_id: uuid.UUID,
    data: ReviewCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Review a product.
    Requires a delivered order containing the product; one review per product.
    """
    return await ReviewService(db).create_review(current_user.id, product_id, data)


@router.put("/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: uuid.UUID,
    data: ReviewUpdate,
    db: DB,
    current_user: CurrentUser,
):
    return await ReviewService(db).update_review(current_user.id, review_id, data)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(review_id: uuid.UUID, db: DB, current_user: CurrentUser):
    await ReviewService(db).delete_review(current_user.id, review_id)
