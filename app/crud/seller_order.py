from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError, ValidationError
from app.crud import order as crud_order
from app.models.order import DeliveryStatus, DepositStatus, Order, OrderStatus
from app.models.user import User
from app.utils.pagination import paginate
from app.utils.timeutils import today


def _owned(db: Session, order_id: int, seller: User) -> Order:
    order = crud_order.get_order(db, order_id)
    if order.seller_id != seller.id:
        raise ForbiddenError("This order does not belong to you")
    return order


def list_seller_orders(db: Session, seller: User, page: int, limit: int,
                       status: Optional[str] = None) -> dict:
    query = db.query(Order).filter(Order.seller_id == seller.id)
    if status:
        query = query.filter(Order.order_status == status)
    return paginate(query.order_by(Order.created_at.desc()), page, limit)


def get_seller_order(db: Session, order_id: int, seller: User) -> Order:
    return _owned(db, order_id, seller)


def update_delivery_status(db: Session, order_id: int, status: str, seller: User) -> Order:
    _owned(db, order_id, seller)
    # a return settles dates and late fees; damage goes through report_damage
    if status == DeliveryStatus.returned.value:
        return crud_order.process_return(db, order_id, today(), actor_id=seller.id)
    return crud_order.update_delivery_status(db, order_id, status, actor_id=seller.id)


def report_damage(db: Session, order_id: int, description: str, photos: list, seller: User) -> Order:
    _owned(db, order_id, seller)
    return crud_order.report_damage(db, order_id, description, photos, reporter_id=seller.id)


def cancel_order(db: Session, order_id: int, reason: str, seller: User) -> Order:
    _owned(db, order_id, seller)
    return crud_order.cancel_rental(db, order_id, reason, actor_id=seller.id)


def refund_deposit(db: Session, order_id: int, refund_amount: float, seller: User) -> Order:
    order = _owned(db, order_id, seller)
    if refund_amount > order.security_deposit:
        raise ValidationError("Refund amount cannot exceed the security deposit")
    action = DepositStatus.release.value if refund_amount == order.security_deposit \
        else DepositStatus.partially_refunded.value
    return crud_order.process_security_deposit(db, order_id, action, refund_amount, actor_id=seller.id)


def total_transactions(db: Session, seller: User) -> dict:
    row = db.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_rental_price), 0.0),
        func.coalesce(func.sum(Order.commission_amount), 0.0),
    ).filter(
        Order.seller_id == seller.id,
        Order.order_status != OrderStatus.cancelled.value,
    ).one()
    count, gross, commission = row
    return {
        "seller_id": seller.id,
        "total_orders": count,
        "gross_rental_value": round(float(gross), 2),
        "total_commission": round(float(commission), 2),
        "net_earnings": round(float(gross) - float(commission), 2),
    }
