# app/crud/admin.py
"""Admin-only operations on products, money, marketing and delivery hand-offs."""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.crud import order as crud_order
from app.crud.product import get_product
from app.models.order import CommissionRule, DeliveryAssignment, DeliveryStatus, DepositStatus, Order, OrderStatus, Payment
from app.models.product import Product
from app.models.promo import PromoCode, Referral, ReferralReward
from app.models.user import User, UserRole
from app.schemas.admin import CommissionRuleCreate, CommissionRuleUpdate
from app.schemas.promo import PromoCodeCreate, PromoCodeUpdate
from app.services.notification_service import enqueue_admin_notification, enqueue_notification
from app.services import order_lifecycle as lifecycle
from app.services.promo_service import evaluate_promo, redeem_promo
from app.utils.pagination import paginate
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


# Products

def update_platform_commission(db: Session, product_id: int, commission: float):
    if commission is None or commission < 0 or commission > 100:
        raise ValidationError("Commission percentage must be between 0 and 100")
    product = get_product(db, product_id)
    product.commission_percentage = commission
    db.commit()
    db.refresh(product)
    logger.info(f"Commission for product {product_id} set to {commission}%")
    return product


def moderate_product(db: Session, product_id: int, status: str, notes: Optional[str] = None):
    product = get_product(db, product_id)
    product.moderation_status = status
    product.moderation_notes = notes
    db.commit()
    db.refresh(product)
    return product


def set_featured(db: Session, product_id: int, is_featured: bool):
    product = get_product(db, product_id)
    product.is_featured = is_featured
    db.commit()
    db.refresh(product)
    return product


def list_all_products(db: Session, page: int, limit: int, moderation_status: Optional[str] = None):
    query = db.query(Product)
    if moderation_status:
        query = query.filter(Product.moderation_status == moderation_status)
    return paginate(query.order_by(Product.created_at.desc()), page, limit)


# Earnings and deposits

def _earnings_row(db: Session, *filters):
    return db.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_rental_price), 0.0),
        func.coalesce(func.sum(Order.commission_amount), 0.0),
        func.coalesce(func.sum(Order.security_deposit), 0.0),
        func.coalesce(func.sum(Order.late_fee), 0.0),
        func.coalesce(func.sum(Order.damage_fee), 0.0),
    ).filter(Order.order_status != OrderStatus.cancelled.value, *filters).one()


def _earnings_dict(row) -> dict:
    count = row[0]
    gross, commission, deposits, late, damage = (float(v) for v in row[1:])
    return {
        "total_orders": count,
        "gross_rental_value": round(gross, 2),
        "total_commission": round(commission, 2),
        "net_seller_earnings": round(gross - commission, 2),
        "total_security_deposits": round(deposits, 2),
        "total_late_fees": round(late, 2),
        "total_damage_fees": round(damage, 2),
    }


def platform_earnings(db: Session) -> dict:
    return _earnings_dict(_earnings_row(db))


def seller_earnings(db: Session, seller_id: int) -> dict:
    seller = db.query(User).filter(User.id == seller_id).first()
    if not seller:
        raise NotFoundError("Seller", seller_id)
    summary = _earnings_dict(_earnings_row(db, Order.seller_id == seller_id))
    withdrawn = db.query(func.coalesce(func.sum(Payment.amount), 0.0)).filter(
        Payment.user_id == seller_id,
        Payment.payment_type == "withdrawal",
        Payment.payment_status.in_(("pending", "processing", "paid")),
    ).scalar()
    summary.update({
        "seller_id": seller_id,
        "total_withdrawn": round(float(withdrawn), 2),
        "available_balance": round(summary["net_seller_earnings"] - float(withdrawn), 2),
    })
    return summary


def security_deposits(db: Session, page: int, limit: int, status: Optional[str] = None) -> dict:
    query = db.query(Order).filter(Order.security_deposit > 0)
    if status:
        query = query.filter(Order.security_deposit_status == status)
    return paginate(query.order_by(Order.created_at.desc()), page, limit)


def deposit_summary(db: Session) -> dict:
    rows = db.query(
        Order.security_deposit_status,
        func.count(Order.id),
        func.coalesce(func.sum(Order.security_deposit), 0.0),
        func.coalesce(func.sum(Order.security_deposit_refund_amount), 0.0),
    ).filter(Order.security_deposit > 0).group_by(Order.security_deposit_status).all()
    by_status = {status: (count, float(held), float(refunded)) for status, count, held, refunded in rows}

    held = by_status.get(DepositStatus.held.value, (0, 0.0, 0.0))
    return {
        "held_count": held[0],
        "held_amount": round(held[1], 2),
        "released_amount": round(by_status.get(DepositStatus.release.value, (0, 0.0, 0.0))[2], 2),
        "refunded_amount": round(by_status.get(DepositStatus.partially_refunded.value, (0, 0.0, 0.0))[2], 2),
        "forfeited_amount": round(by_status.get(DepositStatus.forfeited.value, (0, 0.0, 0.0))[1], 2),
    }


# Withdrawals

def request_withdrawal(db: Session, seller: User, amount: float) -> Payment:
    if not seller.has_bank_details():
        raise ValidationError("Add bank details before requesting a withdrawal")
    balance = seller_earnings(db, seller.id)["available_balance"]
    if amount > balance:
        raise ValidationError(f"Amount exceeds available balance of {balance}")

    payment = Payment(user_id=seller.id, amount=round(amount, 2), payment_type="withdrawal")
    db.add(payment)
    enqueue_admin_notification(db, "withdrawal_requested", {"user_name": seller.full_name, "amount": amount})
    db.commit()
    db.refresh(payment)
    return payment


def list_withdrawals(db: Session, page: int, limit: int, status: Optional[str] = None,
                     user_id: Optional[int] = None) -> dict:
    query = db.query(Payment).filter(Payment.payment_type == "withdrawal")
    if status:
        query = query.filter(Payment.payment_status == status)
    if user_id:
        query = query.filter(Payment.user_id == user_id)
    return paginate(query.order_by(Payment.created_at.desc()), page, limit)


_WITHDRAWAL_FLOW = {
    "pending": {"processing", "paid", "rejected"},
    "processing": {"paid", "rejected"},
    "paid": set(),
    "rejected": set(),
}


def process_withdrawal_request(db: Session, payment_id: int, status: str, admin_id: int,
                               reference: Optional[str] = None) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id, Payment.payment_type == "withdrawal").first()
    if not payment:
        raise NotFoundError("Withdrawal request", payment_id)
    if status == payment.payment_status:
        return payment
    if status not in _WITHDRAWAL_FLOW.get(payment.payment_status, set()):
        raise ConflictError(f"Cannot move withdrawal from '{payment.payment_status}' to '{status}'")

    payment.payment_status = status
    payment.reference = reference or payment.reference
    payment.processed_by = admin_id
    payment.processed_at = utcnow()
    enqueue_notification(db, payment.user_id, "payout_sent", {"amount": payment.amount, "status": status})
    db.commit()
    db.refresh(payment)
    return payment


# Promo codes and referral program

def create_promo_code(db: Session, data: PromoCodeCreate, admin_id: int) -> PromoCode:
    code = data.code.strip().upper()
    if db.query(PromoCode.id).filter(PromoCode.code == code).first():
        raise ConflictError(f"Promo code {code} already exists")

    fields = data.model_dump(exclude={"code", "required_referrals"})
    promo = PromoCode(code=code, created_by=admin_id, **fields)
    db.add(promo)
    db.flush()
    if data.required_referrals:
        db.add(ReferralReward(promo_code_id=promo.id, required_referrals=data.required_referrals))
    db.commit()
    db.refresh(promo)
    return promo


def update_promo_code(db: Session, promo_id: int, data: PromoCodeUpdate) -> PromoCode:
    promo = db.query(PromoCode).filter(PromoCode.id == promo_id).first()
    if not promo:
        raise NotFoundError("Promo code", promo_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(promo, field, value)
    db.commit()
    db.refresh(promo)
    return promo


def list_promo_codes(db: Session, page: int, limit: int, active_only: bool = False) -> dict:
    query = db.query(PromoCode)
    if active_only:
        query = query.filter(PromoCode.is_active.is_(True))
    return paginate(query.order_by(PromoCode.created_at.desc()), page, limit)


def manage_referral_reward(db: Session, promo_code_id: int, required_referrals: int,
                           is_active: bool = True) -> ReferralReward:
    promo = db.query(PromoCode).filter(PromoCode.id == promo_code_id).first()
    if not promo:
        raise NotFoundError("Promo code", promo_code_id)
    reward = promo.referral_reward
    if reward is None:
        reward = ReferralReward(promo_code_id=promo.id)
        db.add(reward)
    reward.required_referrals = required_referrals
    reward.is_active = is_active
    db.commit()
    db.refresh(reward)
    return reward


def list_referrals(db: Session, page: int, limit: int, status: Optional[str] = None) -> dict:
    query = db.query(Referral)
    if status:
        query = query.filter(Referral.status == status)
    return paginate(query.order_by(Referral.created_at.desc()), page, limit)


def apply_promo_to_order(db: Session, order_id: int, code: str, admin_id: int) -> Order:
    order = crud_order.get_order(db, order_id)
    if order.promo_code_id is not None:
        raise ConflictError("A promo code is already applied to this order")
    if order.order_status in (OrderStatus.completed.value, OrderStatus.cancelled.value):
        raise ConflictError("Promo codes can only be applied to open orders")

    evaluation = evaluate_promo(db, code, order.buyer, order.total_amount)
    redeem_promo(db, evaluation, order.buyer, order.id)
    order.promo_code_id = evaluation.promo.id
    order.discount_amount = round(order.discount_amount + evaluation.discount_amount, 2)
    order.total_amount = evaluation.final_amount
    order.last_admin_action = "promo_applied"
    order.last_admin_action_by = admin_id
    order.last_admin_action_at = utcnow()
    enqueue_notification(db, order.buyer_id, "promo_applied", {
        "code": evaluation.promo.code,
        "amount": evaluation.discount_amount,
        "order_id": order.id,
    })
    db.commit()
    db.refresh(order)
    return order


# Delivery hand-offs

def assign_delivery(db: Session, order_id: int, partner_id: int, admin_id: int,
                    assignment_type: str = "delivery", notes: Optional[str] = None) -> DeliveryAssignment:
    order = crud_order.get_order(db, order_id)
    partner = db.query(User).filter(User.id == partner_id).first()
    if not partner or partner.role != UserRole.delivery_partner.value:
        raise ValidationError("delivery_partner_id must reference a delivery partner")
    if order.order_status == OrderStatus.cancelled.value:
        raise ConflictError("Cannot assign delivery for a cancelled order")

    db.query(DeliveryAssignment).filter(
        DeliveryAssignment.order_id == order.id,
        DeliveryAssignment.assignment_type == assignment_type,
        DeliveryAssignment.status.in_(("assigned", "accepted")),
    ).update({DeliveryAssignment.status: "cancelled"}, synchronize_session=False)

    assignment = DeliveryAssignment(
        order_id=order.id,
        delivery_partner_id=partner.id,
        assignment_type=assignment_type,
        notes=notes,
        assigned_by=admin_id,
    )
    db.add(assignment)

    order.delivery_partner_id = partner.id
    order.delivery_assigned_at = utcnow()
    order.delivery_assignment_type = assignment_type
    if order.delivery_status == DeliveryStatus.pending.value:
        lifecycle.transition(order, "delivery_status", DeliveryStatus.accepted.value)
    order.last_admin_action = "delivery_assigned"
    order.last_admin_action_by = admin_id
    order.last_admin_action_at = utcnow()

    enqueue_notification(db, partner.id, "delivery_assigned", {
        "order_id": order.id,
        "assignment_type": assignment_type.replace("_", " "),
    })
    db.commit()
    db.refresh(assignment)
    logger.info(f"Order {order.id} assigned to delivery partner {partner.id} ({assignment_type})")
    return assignment


# Commission rules

def list_commission_rules(db: Session):
    return db.query(CommissionRule).order_by(CommissionRule.category.asc()).all()


def create_commission_rule(db: Session, data: CommissionRuleCreate) -> CommissionRule:
    rule = CommissionRule(**data.model_dump())
    db.add(rule)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"A commission rule for '{data.category or 'default'}' already exists")
    db.refresh(rule)
    return rule


def update_commission_rule(db: Session, rule_id: int, data: CommissionRuleUpdate) -> CommissionRule:
    rule = db.query(CommissionRule).filter(CommissionRule.id == rule_id).first()
    if not rule:
        raise NotFoundError("Commission rule", rule_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(rule, field, value)
    db.commit()
    db.refresh(rule)
    return rule


def delete_commission_rule(db: Session, rule_id: int) -> None:
    deleted = db.query(CommissionRule).filter(CommissionRule.id == rule_id).delete(synchronize_session=False)
    if not deleted:
        raise NotFoundError("Commission rule", rule_id)
    db.commit()
