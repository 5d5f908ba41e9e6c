from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.crud import review as crud_review
from app.db.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.review import (
    CanReviewOut,
    ProductReviewsOut,
    ReviewCreate,
    ReviewOut,
    ReviewPage,
    ReviewUpdate,
    SellerReviewStats,
)

router = APIRouter()


@router.post("/", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
def create_review(data: ReviewCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return crud_review.create_review(db, user, data)


@router.get("/mine", response_model=ReviewPage)
def my_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return crud_review.buyer_reviews(db, user, page, limit)


@router.get("/can-review", response_model=CanReviewOut)
def can_review(
    product_id: int,
    order_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return crud_review.can_review(db, user, product_id, order_id)


@router.get("/product/{product_id}", response_model=ProductReviewsOut)
def product_reviews(
    product_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
):
    return crud_review.product_reviews(db, product_id, page, limit)


@router.get("/seller/{seller_id}", response_model=ReviewPage)
def seller_reviews(
    seller_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
):
    return crud_review.seller_reviews(db, seller_id, page, limit)


@router.get("/seller/{seller_id}/stats", response_model=SellerReviewStats)
def seller_stats(seller_id: int, db: Session = Depends(get_db)):
    return crud_review.seller_stats(db, seller_id)


@router.put("/{review_id}", response_model=ReviewOut)
def update_review(
    review_id: int,
    data: ReviewUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return crud_review.update_review(db, review_id, user, data)


@router.delete("/{review_id}", response_model=MessageResponse)
def delete_review(review_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    crud_review.delete_review(db, review_id, user)
    return {"message": "Review deleted"}
