from sqlalchemy import Column, Integer, String, ForeignKey, Float, DateTime, Boolean, Text, JSON, Index
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.utils.timeutils import utcnow
import enum


class DiscountType(str, enum.Enum):
    percentage = "percentage"
    flat = "flat"


class PromoEligibility(str, enum.Enum):
    all = "all"
    new_users = "new_users"
    buyers = "buyers"
    sellers = "sellers"
    specific_users = "specific_users"


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False, default=DiscountType.percentage.value)
    discount_value = Column(Float, nullable=False)
    max_discount_amount = Column(Float, nullable=True)
    min_order_amount = Column(Float, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    eligibility = Column(String(20), nullable=False, default=PromoEligibility.all.value)
    specific_user_ids = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    referral_reward = relationship("ReferralReward", back_populates="promo_code", uselist=False)


class ReferralReward(Base):
    """Gates a promo code behind a number of completed referrals."""

    __tablename__ = "referral_rewards"

    id = Column(Integer, primary_key=True, index=True)
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id"), nullable=False, unique=True)
    required_referrals = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    promo_code = relationship("PromoCode", back_populates="referral_reward")


class PromoCodeClaim(Base):
    __tablename__ = "promo_code_claims"

    id = Column(Integer, primary_key=True, index=True)
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    discount_amount = Column(Float, nullable=False, default=0.0)
    claimed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_claim_promo_user", "promo_code_id", "user_id"),)


class Referral(Base):
    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True, index=True)
    referrer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    referred_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    referral_code = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending | completed
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    referrer = relationship("User", foreign_keys=[referrer_id])
    referred = relationship("User", foreign_keys=[referred_id])


class ReferralInvite(Base):
    __tablename__ = "referral_invites"

    id = Column(Integer, primary_key=True, index=True)
    referrer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class UserReward(Base):
    __tablename__ = "user_rewards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    referral_id = Column(Integer, ForeignKey("referrals.id"), nullable=True)
    reward_type = Column(String(30), nullable=False, default="referral_bonus")
    amount = Column(Float, nullable=False)
    is_redeemed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
