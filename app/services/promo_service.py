# app/services/promo_service.py
"""
Promo code evaluation.

Rules run in a fixed order and stop at the first failure:
active flag, expiry, usage cap, eligibility class, referral gate,
minimum order amount, then the discount itself.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.promo import DiscountType, PromoCode, PromoCodeClaim, PromoEligibility, Referral
from app.models.user import User, UserRole
from app.utils.timeutils import utcnow

import logging

logger = logging.getLogger(__name__)


@dataclass
class PromoEvaluation:
    promo: PromoCode
    order_total: float
    discount_amount: float

    @property
    def final_amount(self) -> float:
        return round(self.order_total - self.discount_amount, 2)


def compute_discount(
    discount_type: str,
    discount_value: float,
    order_total: float,
    max_discount_amount: Optional[float] = None,
) -> float:
    if discount_type == DiscountType.percentage.value:
        discount = order_total * discount_value / 100
    else:
        discount = discount_value
    if max_discount_amount is not None:
        discount = min(discount, max_discount_amount)
    return round(min(discount, order_total), 2)


def is_new_user(user: User, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return now - user.created_at < timedelta(days=settings.NEW_USER_WINDOW_DAYS)


def completed_referral_count(db: Session, user_id: int) -> int:
    return db.query(Referral).filter(
        Referral.referrer_id == user_id,
        Referral.status == "completed",
    ).count()


def _check_eligibility(promo: PromoCode, user: User, now: datetime) -> None:
    eligibility = promo.eligibility
    if eligibility == PromoEligibility.all.value:
        return
    if eligibility == PromoEligibility.new_users.value:
        if not is_new_user(user, now):
            raise ValidationError("This promo code is only for new users")
    elif eligibility == PromoEligibility.buyers.value:
        if user.role != UserRole.buyer.value:
            raise ValidationError("This promo code is only for buyers")
    elif eligibility == PromoEligibility.sellers.value:
        if user.role != UserRole.seller.value:
            raise ValidationError("This promo code is only for sellers")
    elif eligibility == PromoEligibility.specific_users.value:
        if user.id not in (promo.specific_user_ids or []):
            raise ValidationError("You are not eligible for this promo code")


def _check_referral_gate(db: Session, promo: PromoCode, user: User) -> None:
    reward = promo.referral_reward
    if reward is None or not reward.is_active:
        return
    if completed_referral_count(db, user.id) < reward.required_referrals:
        raise ValidationError(
            f"You need {reward.required_referrals} completed referral(s) to use this code"
        )
    claimed = db.query(PromoCodeClaim).filter(
        PromoCodeClaim.promo_code_id == promo.id,
        PromoCodeClaim.user_id == user.id,
    ).first()
    if claimed:
        raise ValidationError("You have already claimed this reward")


def get_promo_by_code(db: Session, code: str) -> PromoCode:
    promo = db.query(PromoCode).filter(PromoCode.code == code.strip().upper()).first()
    if not promo:
        raise NotFoundError("Promo code")
    return promo


def evaluate_promo(
    db: Session,
    code: str,
    user: User,
    order_total: float,
    now: Optional[datetime] = None,
) -> PromoEvaluation:
    """Run the rule chain. Raises ValidationError naming the first rule that failed."""
    now = now or utcnow()
    promo = get_promo_by_code(db, code)

    if not promo.is_active:
        raise ValidationError("Promo code is inactive")
    if promo.expires_at is not None and promo.expires_at < now:
        raise ValidationError("Promo code has expired")
    if promo.usage_limit is not None and promo.usage_count >= promo.usage_limit:
        raise ValidationError("Promo code usage limit reached")
    _check_eligibility(promo, user, now)
    _check_referral_gate(db, promo, user)
    if promo.min_order_amount is not None and order_total < promo.min_order_amount:
        raise ValidationError(f"Minimum order amount is {promo.min_order_amount}")

    discount = compute_discount(
        promo.discount_type,
        promo.discount_value,
        order_total,
        promo.max_discount_amount,
    )
    return PromoEvaluation(promo=promo, order_total=order_total, discount_amount=discount)


def validate_promo_code(db: Session, code: str, user: User, order_total: float) -> dict:
    try:
        result = evaluate_promo(db, code, user, order_total)
    except (ValidationError, NotFoundError) as e:
        return {"valid": False, "code": code, "discount_amount": 0.0, "message": e.message}
    return {
        "valid": True,
        "code": result.promo.code,
        "discount_amount": result.discount_amount,
        "final_amount": result.final_amount,
        "message": "Promo code applied",
    }


def redeem_promo(
    db: Session,
    evaluation: PromoEvaluation,
    user: User,
    order_id: Optional[int] = None,
) -> None:
    """Count one use of the code and record the claim. The caller commits."""
    promo = evaluation.promo
    updated = (
        db.query(PromoCode)
        .filter(
            PromoCode.id == promo.id,
            or_(PromoCode.usage_limit.is_(None), PromoCode.usage_count < PromoCode.usage_limit),
        )
        .update({PromoCode.usage_count: PromoCode.usage_count + 1}, synchronize_session=False)
    )
    if updated == 0:
        raise ConflictError("Promo code usage limit reached")

    db.add(PromoCodeClaim(
        promo_code_id=promo.id,
        user_id=user.id,
        order_id=order_id,
        discount_amount=evaluation.discount_amount,
    ))
    logger.info(f"Promo {promo.code} redeemed by user {user.id} for {evaluation.discount_amount}")
