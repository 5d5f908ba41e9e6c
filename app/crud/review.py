import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.crud.product import get_product
from app.models.order import Order, OrderStatus
from app.models.product import Product
from app.models.review import Review
from app.models.user import User, UserRole
from app.schemas.review import ReviewCreate, ReviewUpdate
from app.services.notification_service import enqueue_notification
from app.utils.pagination import paginate
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def _review_blocker(db: Session, buyer: User, product_id: int, order_id: int) -> Optional[str]:
    """Reason the buyer cannot review this order, or None."""
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order or order.buyer_id != buyer.id:
        return "Order not found"
    if order.product_id != product_id:
        return "Order does not match this product"
    if order.order_status != OrderStatus.completed.value:
        return "You can only review completed rentals"
    if db.query(Review.id).filter(Review.order_id == order_id).first():
        return "You have already reviewed this rental"
    return None


def can_review(db: Session, buyer: User, product_id: int, order_id: int) -> dict:
    reason = _review_blocker(db, buyer, product_id, order_id)
    return {"can_review": reason is None, "reason": reason}


def create_review(db: Session, buyer: User, data: ReviewCreate) -> Review:
    product = get_product(db, data.product_id)
    reason = _review_blocker(db, buyer, data.product_id, data.order_id)
    if reason == "Order not found":
        raise NotFoundError("Order", data.order_id)
    if reason == "You have already reviewed this rental":
        raise ConflictError(reason)
    if reason:
        raise ValidationError(reason)

    review = Review(
        product_id=product.id,
        buyer_id=buyer.id,
        order_id=data.order_id,
        rating=data.rating,
        comment=data.comment,
    )
    db.add(review)
    enqueue_notification(db, product.seller_id, "review_received", {
        "product_name": product.title,
        "rating": data.rating,
    })
    db.commit()
    db.refresh(review)
    return review


def _owned_review(db: Session, review_id: int, user: User) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if not review:
        raise NotFoundError("Review", review_id)
    if review.buyer_id != user.id and user.role != UserRole.admin.value:
        raise ForbiddenError("You can only change your own reviews")
    return review


def update_review(db: Session, review_id: int, user: User, data: ReviewUpdate) -> Review:
    review = _owned_review(db, review_id, user)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(review, field, value)
    db.commit()
    db.refresh(review)
    return review


def delete_review(db: Session, review_id: int, user: User) -> None:
    review = _owned_review(db, review_id, user)
    db.delete(review)
    db.commit()


def _rating_stats(db: Session, *filters) -> dict:
    rows = db.query(Review.rating, func.count(Review.id)).filter(*filters).group_by(Review.rating).all()
    distribution = {star: 0 for star in range(1, 6)}
    for rating, count in rows:
        distribution[rating] = count
    total = sum(distribution.values())
    average = sum(star * count for star, count in distribution.items()) / total if total else 0.0
    return {"review_count": total, "average_rating": round(average, 2), "rating_distribution": distribution}


def product_reviews(db: Session, product_id: int, page: int, limit: int) -> dict:
    get_product(db, product_id)
    query = db.query(Review).filter(Review.product_id == product_id).order_by(Review.created_at.desc())
    result = paginate(query, page, limit)
    result.update(_rating_stats(db, Review.product_id == product_id))
    return result


def seller_reviews(db: Session, seller_id: int, page: int, limit: int) -> dict:
    query = (
        db.query(Review)
        .join(Product, Product.id == Review.product_id)
        .filter(Product.seller_id == seller_id)
        .order_by(Review.created_at.desc())
    )
    return paginate(query, page, limit)


def buyer_reviews(db: Session, buyer: User, page: int, limit: int) -> dict:
    query = db.query(Review).filter(Review.buyer_id == buyer.id).order_by(Review.created_at.desc())
    return paginate(query, page, limit)


def seller_stats(db: Session, seller_id: int) -> dict:
    seller_products = db.query(Product.id).filter(Product.seller_id == seller_id)
    stats = _rating_stats(db, Review.product_id.in_(seller_products))
    recent = db.query(func.count(Review.id)).filter(
        Review.product_id.in_(seller_products),
        Review.created_at >= utcnow() - timedelta(days=30),
    ).scalar()
    return {
        "seller_id": seller_id,
        "total_reviews": stats["review_count"],
        "average_rating": stats["average_rating"],
        "rating_distribution": stats["rating_distribution"],
        "reviews_last_30_days": recent,
    }
