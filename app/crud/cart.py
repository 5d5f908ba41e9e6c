import logging
from datetime import date, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.cart import CartItem
from app.models.order import Order
from app.models.product import AvailabilityStatus, ModerationStatus, Product
from app.models.user import User
from app.schemas.cart import CartAdd, CartUpdate
from app.services.order_lifecycle import BLOCKING_ORDER_STATUSES
from app.services.pricing import quote_rental
from app.services.storage_service import StorageService
from app.crud.product import get_product, product_view
from app.utils.timeutils import today, utcnow

logger = logging.getLogger(__name__)


def date_ranges_overlap(s1: date, e1: date, s2: date, e2: date) -> bool:
    """Inclusive on both ends, so a rental ending on the day another starts overlaps it."""
    return s1 <= e2 and s2 <= e1


def check_product_availability(
    db: Session,
    product_id: int,
    start: date,
    end: date,
    exclude_order_id: Optional[int] = None,
) -> Tuple[bool, Optional[str]]:
    product = get_product(db, product_id)
    if (product.availability_status != AvailabilityStatus.available.value
            or product.moderation_status != ModerationStatus.visible.value):
        return False, "Product is not available for rent"

    query = db.query(Order.id).filter(
        Order.product_id == product_id,
        Order.order_status.in_(BLOCKING_ORDER_STATUSES),
        Order.rental_start_date <= end,
        Order.rental_end_date >= start,
    )
    if exclude_order_id is not None:
        query = query.filter(Order.id != exclude_order_id)
    if query.first():
        return False, "Product is already booked for the selected dates"
    return True, None


def _check_dates(start: date, end: date) -> None:
    if end <= start:
        raise ValidationError("rental_end_date must be after rental_start_date")
    if start < today():
        raise ValidationError("Rental cannot start in the past")


def add_to_cart(db: Session, buyer: User, data: CartAdd) -> CartItem:
    _check_dates(data.rental_start_date, data.rental_end_date)
    product = get_product(db, data.product_id)
    if product.seller_id == buyer.id:
        raise ValidationError("You cannot rent your own product")

    existing = db.query(CartItem).filter(
        CartItem.buyer_id == buyer.id,
        CartItem.product_id == product.id,
    ).first()
    if existing and existing.expires_at > utcnow():
        raise ConflictError("Product is already in your cart")

    available, reason = check_product_availability(db, product.id, data.rental_start_date, data.rental_end_date)
    if not available:
        raise ConflictError(reason)
    quote_rental(product, data.rental_start_date, data.rental_end_date, data.try_on_requested)

    if existing:
        # expired entry, reuse the row
        db.delete(existing)
        db.flush()

    item = CartItem(
        buyer_id=buyer.id,
        product_id=product.id,
        rental_start_date=data.rental_start_date,
        rental_end_date=data.rental_end_date,
        try_on_requested=data.try_on_requested,
        expires_at=utcnow() + timedelta(days=settings.CART_EXPIRY_DAYS),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def get_cart_item(db: Session, buyer: User, item_id: int) -> CartItem:
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.buyer_id == buyer.id).first()
    if not item:
        raise NotFoundError("Cart item", item_id)
    return item


def update_cart_item(db: Session, buyer: User, item_id: int, data: CartUpdate) -> CartItem:
    item = get_cart_item(db, buyer, item_id)
    start = data.rental_start_date or item.rental_start_date
    end = data.rental_end_date or item.rental_end_date
    try_on = item.try_on_requested if data.try_on_requested is None else data.try_on_requested
    _check_dates(start, end)

    if (start, end) != (item.rental_start_date, item.rental_end_date):
        available, reason = check_product_availability(db, item.product_id, start, end)
        if not available:
            raise ConflictError(reason)
    quote_rental(item.product, start, end, try_on)

    item.rental_start_date = start
    item.rental_end_date = end
    item.try_on_requested = try_on
    item.expires_at = utcnow() + timedelta(days=settings.CART_EXPIRY_DAYS)
    db.commit()
    db.refresh(item)
    return item


def remove_from_cart(db: Session, buyer: User, product_id: int) -> None:
    deleted = db.query(CartItem).filter(
        CartItem.buyer_id == buyer.id,
        CartItem.product_id == product_id,
    ).delete(synchronize_session=False)
    if not deleted:
        raise NotFoundError("Cart item")
    db.commit()


def clear_cart(db: Session, buyer: User) -> int:
    deleted = db.query(CartItem).filter(CartItem.buyer_id == buyer.id).delete(synchronize_session=False)
    db.commit()
    return deleted


def cart_status(db: Session, buyer: User, product_id: int) -> dict:
    item = db.query(CartItem).filter(
        CartItem.buyer_id == buyer.id,
        CartItem.product_id == product_id,
        CartItem.expires_at > utcnow(),
    ).first()
    return {"in_cart": item is not None, "cart_item_id": item.id if item else None}


def get_cart(db: Session, buyer: User, storage: StorageService) -> dict:
    items = (
        db.query(CartItem)
        .join(Product, Product.id == CartItem.product_id)
        .filter(CartItem.buyer_id == buyer.id, CartItem.expires_at > utcnow())
        .order_by(CartItem.created_at.desc())
        .all()
    )

    lines = []
    summary = {
        "item_count": 0,
        "total_rental_price": 0.0,
        "total_security_deposit": 0.0,
        "total_try_on_fee": 0.0,
        "grand_total": 0.0,
    }
    for item in items:
        quote = quote_rental(
            item.product,
            item.rental_start_date,
            item.rental_end_date,
            item.try_on_requested and item.product.try_on_available,
        )
        lines.append({
            "id": item.id,
            "product": product_view(item.product, storage),
            "rental_start_date": item.rental_start_date,
            "rental_end_date": item.rental_end_date,
            "rental_days": quote.rental_days,
            "try_on_requested": item.try_on_requested,
            "rental_price": quote.rental_price,
            "security_deposit": quote.security_deposit,
            "try_on_fee": quote.try_on_fee,
            "item_total": quote.total,
            "expires_at": item.expires_at,
        })
        summary["item_count"] += 1
        summary["total_rental_price"] += quote.rental_price
        summary["total_security_deposit"] += quote.security_deposit
        summary["total_try_on_fee"] += quote.try_on_fee
        summary["grand_total"] += quote.total

    summary = {k: round(v, 2) if isinstance(v, float) else v for k, v in summary.items()}
    return {"items": lines, "summary": summary}
