# app/crud/order.py
"""
Rental orders: checkout plus every mutation of an order row.

Each mutator loads the order, validates the change through
``order_lifecycle``, queues the notifications it implies and commits once.
Stale writes surface as ``StaleDataError`` through the version column.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.crud.cart import check_product_availability
from app.crud.product import get_product
from app.models.cart import CartItem
from app.models.order import (
    DamageClaimStatus,
    DeliveryStatus,
    DepositStatus,
    Order,
    OrderStatus,
)
from app.models.user import User, UserRole
from app.schemas.order import OrderCreate
from app.services import order_lifecycle as lifecycle
from app.services.notification_service import enqueue_admin_notification, enqueue_notification
from app.services.pricing import commission_amount, commission_percentage_for, quote_rental
from app.services.promo_service import evaluate_promo, redeem_promo
from app.services.referral_service import ReferralService
from app.utils.pagination import paginate
from app.utils.timeutils import today, utcnow

logger = logging.getLogger(__name__)


def get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order", order_id)
    return order


def get_order_for(db: Session, order_id: int, user: User) -> Order:
    """Order visible to a party of the rental, or to an admin."""
    order = get_order(db, order_id)
    if user.role == UserRole.admin.value:
        return order
    if user.id not in (order.buyer_id, order.seller_id, order.delivery_partner_id):
        raise ForbiddenError("You do not have access to this order")
    return order


def _stamp(order: Order, action: str, actor_id: Optional[int]) -> None:
    order.last_admin_action = action
    order.last_admin_action_by = actor_id
    order.last_admin_action_at = utcnow()


def _order_placeholders(order: Order, **extra) -> dict:
    values = {
        "order_id": order.id,
        "product_name": order.product.title if order.product else "",
        "start_date": order.rental_start_date.isoformat(),
        "end_date": order.rental_end_date.isoformat(),
        "total_amount": order.total_amount,
    }
    values.update(extra)
    return values


def _notify_parties(db: Session, order: Order, event: str, **extra) -> None:
    values = _order_placeholders(order, **extra)
    enqueue_notification(db, order.buyer_id, event, values)
    enqueue_notification(db, order.seller_id, event, values)


def _save(db: Session, order: Order) -> Order:
    db.commit()
    db.refresh(order)
    return order


def create_rental(db: Session, buyer: User, data: OrderCreate) -> Order:
    product = get_product(db, data.product_id)
    if product.seller_id == buyer.id:
        raise ValidationError("You cannot rent your own product")
    if data.rental_start_date < today():
        raise ValidationError("Rental cannot start in the past")

    available, reason = check_product_availability(db, product.id, data.rental_start_date, data.rental_end_date)
    if not available:
        raise ConflictError(reason)

    quote = quote_rental(product, data.rental_start_date, data.rental_end_date, data.try_on_requested)
    subtotal = quote.total

    evaluation = None
    discount = 0.0
    if data.promo_code:
        evaluation = evaluate_promo(db, data.promo_code, buyer, subtotal)
        discount = evaluation.discount_amount

    percentage = commission_percentage_for(db, product)
    order = Order(
        buyer_id=buyer.id,
        seller_id=product.seller_id,
        product_id=product.id,
        promo_code_id=evaluation.promo.id if evaluation else None,
        rental_start_date=data.rental_start_date,
        rental_end_date=data.rental_end_date,
        rental_duration_days=quote.rental_days,
        expected_return_date=data.rental_end_date,
        total_rental_price=quote.rental_price,
        security_deposit=quote.security_deposit,
        try_on_fee=quote.try_on_fee,
        discount_amount=discount,
        total_amount=round(subtotal - discount, 2),
        commission_amount=commission_amount(quote.rental_price, percentage),
        order_status=OrderStatus.upcoming.value,
        delivery_status=DeliveryStatus.pending.value,
        payment_status="pending",
        damage_claim_status=DamageClaimStatus.none.value,
        security_deposit_status=DepositStatus.held.value,
        delivery_address=data.delivery_address,
        pickup_address=data.pickup_address,
        damage_claim_photos=[],
    )
    db.add(order)
    db.flush()

    if evaluation:
        redeem_promo(db, evaluation, buyer, order.id)
        enqueue_notification(db, buyer.id, "promo_applied", {
            "code": evaluation.promo.code,
            "amount": discount,
            "order_id": order.id,
        })

    db.query(CartItem).filter(
        CartItem.buyer_id == buyer.id,
        CartItem.product_id == product.id,
    ).delete(synchronize_session=False)

    ReferralService.complete_for_buyer(db, buyer)

    values = _order_placeholders(order, product_name=product.title)
    enqueue_notification(db, product.seller_id, "product_booked", values)
    enqueue_notification(db, buyer.id, "rental_confirmed", values)
    enqueue_admin_notification(db, "rental_order_placed", values)

    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} created by buyer {buyer.id} for product {product.id} ({order.total_amount})")
    return order


def list_user_rentals(db: Session, user: User, page: int, limit: int, as_seller: bool = False,
                      status: Optional[str] = None) -> dict:
    column = Order.seller_id if as_seller else Order.buyer_id
    query = db.query(Order).filter(column == user.id)
    if status:
        query = query.filter(Order.order_status == status)
    return paginate(query.order_by(Order.created_at.desc()), page, limit)


def list_orders(db: Session, page: int, limit: int, order_status: Optional[str] = None,
                delivery_status: Optional[str] = None, buyer_id: Optional[int] = None,
                seller_id: Optional[int] = None) -> dict:
    query = db.query(Order)
    if order_status:
        query = query.filter(Order.order_status == order_status)
    if delivery_status:
        query = query.filter(Order.delivery_status == delivery_status)
    if buyer_id:
        query = query.filter(Order.buyer_id == buyer_id)
    if seller_id:
        query = query.filter(Order.seller_id == seller_id)
    return paginate(query.order_by(Order.created_at.desc()), page, limit)


def list_active_rentals(db: Session, page: int, limit: int) -> dict:
    query = db.query(Order).filter(Order.order_status.in_(lifecycle.BLOCKING_ORDER_STATUSES))
    return paginate(query.order_by(Order.created_at.desc()), page, limit)


def list_overdue_rentals(db: Session, page: int, limit: int) -> dict:
    query = db.query(Order).filter(
        Order.order_status == OrderStatus.ongoing.value,
        Order.expected_return_date < today(),
        Order.actual_return_date.is_(None),
    )
    return paginate(query.order_by(Order.expected_return_date.asc()), page, limit)


def update_rental(db: Session, order_id: int, data: dict, actor_id: Optional[int] = None) -> Order:
    order = get_order(db, order_id)
    for field, value in data.items():
        if value is not None:
            setattr(order, field, value)
    _stamp(order, "updated", actor_id)
    return _save(db, order)


def update_order_status(db: Session, order_id: int, status: str, actor_id: Optional[int] = None) -> Order:
    """Admin status endpoint. Accepts the delivery-stage values and writes ``delivery_status``."""
    if status not in lifecycle.ADMIN_STATUS_VALUES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(lifecycle.ADMIN_STATUS_VALUES)}"
        )
    return update_delivery_status(db, order_id, status, actor_id=actor_id)


def set_order_status(db: Session, order_id: int, status: str, actor_id: Optional[int] = None) -> Order:
    order = get_order(db, order_id)
    if status == OrderStatus.cancelled.value and order.order_status != status:
        return cancel_rental(db, order_id, "Cancelled by admin", actor_id)
    if not lifecycle.transition(order, "order_status", status):
        return order
    _stamp(order, f"order_status:{status}", actor_id)
    return _save(db, order)


def update_delivery_status(
    db: Session,
    order_id: int,
    status: str,
    partner_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> Order:
    order = get_order(db, order_id)
    # cancelling moves order_status too, so it must go through cancel_rental
    if status == DeliveryStatus.cancelled.value and order.delivery_status != status:
        return cancel_rental(db, order_id, "Cancelled by admin", actor_id)
    changed = lifecycle.transition(order, "delivery_status", status)

    if partner_id is not None and partner_id != order.delivery_partner_id:
        partner = db.query(User).filter(User.id == partner_id).first()
        if not partner or partner.role != UserRole.delivery_partner.value:
            raise ValidationError("delivery_partner_id must reference a delivery partner")
        order.delivery_partner_id = partner_id
        order.delivery_assigned_at = utcnow()
        changed = True

    if not changed:
        return order

    if actor_id is not None:
        _stamp(order, f"delivery_status:{status}", actor_id)

    if status == DeliveryStatus.delivered.value:
        enqueue_notification(db, order.seller_id, "delivery_update", _order_placeholders(order, status="delivered"))
    enqueue_notification(db, order.buyer_id, "delivery_update", _order_placeholders(order, status=status.replace("_", " ")))
    return _save(db, order)


def update_payment_status(db: Session, order_id: int, status: str) -> Order:
    order = get_order(db, order_id)
    if not lifecycle.transition(order, "payment_status", status):
        return order
    return _save(db, order)


def apply_late_fee(db: Session, order_id: int, amount: float, actor_id: Optional[int] = None) -> Order:
    if amount is None or amount <= 0:
        raise ValidationError("Late fee amount must be greater than 0")
    order = get_order(db, order_id)
    if order.order_status == OrderStatus.cancelled.value:
        raise ConflictError("Cannot apply a late fee to a cancelled order")

    now = utcnow()
    db.query(Order).filter(Order.id == order_id).update(
        {
            Order.late_fee: Order.late_fee + amount,
            Order.version: Order.version + 1,
            Order.late_fee_applied_at: now,
            Order.last_admin_action: "apply_late_fee",
            Order.last_admin_action_by: actor_id,
            Order.last_admin_action_at: now,
            Order.updated_at: now,
        },
        synchronize_session=False,
    )
    enqueue_notification(db, order.buyer_id, "late_fee_applied", {"order_id": order.id, "amount": amount})
    db.commit()
    db.refresh(order)
    logger.info(f"Late fee {amount} applied to order {order_id}, total now {order.late_fee}")
    return order


def report_damage(db: Session, order_id: int, description: str, photos: list,
                  reporter_id: Optional[int] = None) -> Order:
    order = get_order(db, order_id)
    if order.delivery_status not in (DeliveryStatus.returned.value, DeliveryStatus.returned_damaged.value):
        raise ConflictError("Damage can only be reported after the item is returned")
    lifecycle.transition(order, "damage_claim_status", DamageClaimStatus.reported.value)
    lifecycle.transition(order, "delivery_status", DeliveryStatus.returned_damaged.value)
    order.damage_claim_description = description
    order.damage_claim_photos = list(photos or [])

    values = _order_placeholders(order, description=description)
    enqueue_notification(db, order.seller_id, "damage_reported", values)
    enqueue_notification(db, order.buyer_id, "damage_claim", values)
    enqueue_admin_notification(db, "damage_reported", values)
    logger.info(f"Damage reported on order {order_id} by user {reporter_id}")
    return _save(db, order)


def handle_damage_claim(db: Session, order_id: int, action: str, amount: Optional[float],
                        reviewer_id: Optional[int] = None) -> Order:
    if action not in ("approve", "reject"):
        raise ValidationError("action must be 'approve' or 'reject'")
    if action == "approve" and (amount is None or amount <= 0):
        raise ValidationError("An approved claim needs a damage amount greater than 0")

    order = get_order(db, order_id)
    target = DamageClaimStatus.approved.value if action == "approve" else DamageClaimStatus.rejected.value
    if order.damage_claim_status != target and order.damage_claim_status != DamageClaimStatus.reported.value:
        raise ConflictError("There is no open damage claim on this order")
    if not lifecycle.transition(order, "damage_claim_status", target):
        return order

    order.damage_fee = round(amount, 2) if action == "approve" else 0.0
    order.damage_reviewed_by = reviewer_id
    order.damage_reviewed_at = utcnow()
    _stamp(order, f"damage_claim:{target}", reviewer_id)
    _notify_parties(db, order, "damage_claim_resolved", decision=target, amount=order.damage_fee)
    return _save(db, order)


def process_security_deposit(db: Session, order_id: int, action: str,
                             refund_amount: Optional[float] = None, actor_id: Optional[int] = None) -> Order:
    if action not in (DepositStatus.release.value, DepositStatus.partially_refunded.value,
                      DepositStatus.forfeited.value):
        raise ValidationError("action must be one of release, partially_refunded, forfeited")

    order = get_order(db, order_id)
    if action == DepositStatus.partially_refunded.value:
        if refund_amount is None or refund_amount <= 0:
            raise ValidationError("Refund amount must be greater than 0")
        if refund_amount > order.security_deposit:
            raise ValidationError("Refund amount cannot exceed the security deposit")

    if not lifecycle.transition(order, "security_deposit_status", action):
        return order

    if action == DepositStatus.release.value:
        order.security_deposit_refund_amount = order.security_deposit
    elif action == DepositStatus.partially_refunded.value:
        order.security_deposit_refund_amount = round(refund_amount, 2)
    else:
        order.security_deposit_refund_amount = 0.0
    order.security_deposit_released_at = utcnow()
    _stamp(order, f"security_deposit:{action}", actor_id)

    amount = order.security_deposit_refund_amount
    enqueue_notification(db, order.buyer_id, "refund_processed",
                         _order_placeholders(order, action=action.replace("_", " "), amount=amount))
    enqueue_notification(db, order.seller_id, "security_deposit_refunded",
                         _order_placeholders(order, action=action.replace("_", " "), amount=amount))
    return _save(db, order)


def process_return(db: Session, order_id: int, return_date: date, photo_url: Optional[str] = None,
                   actor_id: Optional[int] = None) -> Order:
    order = get_order(db, order_id)
    late_days = lifecycle.days_late(order.expected_return_date, return_date)
    is_late = late_days > 0

    lifecycle.transition(order, "delivery_status", DeliveryStatus.returned.value)
    lifecycle.transition(order, "order_status", OrderStatus.late.value if is_late else OrderStatus.completed.value)

    order.actual_return_date = return_date
    order.is_late_return = is_late
    order.late_fee = lifecycle.calculate_late_fee(order.total_rental_price, order.rental_duration_days, late_days)
    if is_late:
        order.late_fee_applied_at = utcnow()
    if photo_url:
        order.collection_photo_url = photo_url
    _stamp(order, "processed_return", actor_id)

    enqueue_notification(db, order.buyer_id, "return_received", _order_placeholders(order))
    enqueue_notification(db, order.seller_id, "product_returned", _order_placeholders(order))
    if is_late:
        enqueue_notification(db, order.seller_id, "late_return",
                             _order_placeholders(order, days_late=late_days, amount=order.late_fee))
        enqueue_notification(db, order.buyer_id, "late_fee_applied",
                             _order_placeholders(order, amount=order.late_fee))
    return _save(db, order)


def cancel_rental(db: Session, order_id: int, reason: str, actor_id: Optional[int] = None) -> Order:
    if not reason or not reason.strip():
        raise ValidationError("A cancellation reason is required")
    order = get_order(db, order_id)
    lifecycle.ensure_cancellable(order)

    lifecycle.transition(order, "order_status", OrderStatus.cancelled.value)
    if order.delivery_status not in (DeliveryStatus.cancelled.value,):
        lifecycle.transition(order, "delivery_status", DeliveryStatus.cancelled.value)
    order.admin_notes = reason.strip()
    _stamp(order, "cancelled", actor_id)

    _notify_parties(db, order, "order_cancelled", reason=reason.strip())
    logger.info(f"Order {order_id} cancelled by {actor_id}: {reason}")
    return _save(db, order)


def extend_rental(db: Session, order_id: int, new_end_date: date, user: User) -> Order:
    order = get_order_for(db, order_id, user)
    if user.role != UserRole.admin.value and user.id != order.buyer_id:
        raise ForbiddenError("Only the buyer can extend this rental")
    if order.order_status not in lifecycle.BLOCKING_ORDER_STATUSES:
        raise ConflictError("Only upcoming or ongoing rentals can be extended")
    if new_end_date <= order.rental_end_date:
        raise ValidationError("New end date must be after the current end date")

    available, reason = check_product_availability(
        db, order.product_id, order.rental_end_date + timedelta(days=1), new_end_date,
        exclude_order_id=order.id,
    )
    if not available:
        raise ConflictError(reason)

    quote = quote_rental(order.product, order.rental_start_date, new_end_date)
    extra_rent = round(quote.rental_price - order.total_rental_price, 2)
    percentage = commission_percentage_for(db, order.product)

    order.rental_end_date = new_end_date
    order.expected_return_date = new_end_date
    order.rental_duration_days = quote.rental_days
    order.total_rental_price = quote.rental_price
    order.commission_amount = commission_amount(quote.rental_price, percentage)
    order.total_amount = round(order.total_amount + extra_rent, 2)
    logger.info(f"Order {order_id} extended to {new_end_date} (+{extra_rent})")
    return _save(db, order)


def add_admin_note(db: Session, order_id: int, note: str, actor_id: int) -> Order:
    order = get_order(db, order_id)
    stamp = utcnow().strftime("%Y-%m-%d %H:%M")
    entry = f"[{stamp}] {note.strip()}"
    order.admin_notes = f"{order.admin_notes}\n{entry}" if order.admin_notes else entry
    _stamp(order, "note_added", actor_id)
    return _save(db, order)


def missed_pickups(db: Session, page: int, limit: int) -> dict:
    query = db.query(Order).filter(
        Order.delivery_status == DeliveryStatus.pending.value,
        Order.order_status != OrderStatus.cancelled.value,
        Order.rental_start_date < today(),
    )
    return paginate(query.order_by(Order.rental_start_date.asc()), page, limit)
