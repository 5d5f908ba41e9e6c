import secrets
import string
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.promo import Referral, ReferralInvite, UserReward
from app.models.user import User
from app.services.notification_service import enqueue_notification
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_uppercase + string.digits


class ReferralService:
    """Referral codes, signup attribution and first-purchase rewards"""

    @staticmethod
    def generate_code(db: Session, full_name: str = "") -> str:
        prefix = "".join(ch for ch in full_name.upper() if ch.isalpha())[:4] or "RENT"
        while True:
            code = prefix + "".join(secrets.choice(_ALPHABET) for _ in range(6))
            if not db.query(User.id).filter(User.referral_code == code).first():
                return code

    @staticmethod
    def ensure_code(db: Session, user: User) -> str:
        if not user.referral_code:
            user.referral_code = ReferralService.generate_code(db, user.full_name)
            db.commit()
            db.refresh(user)
        return user.referral_code

    @staticmethod
    def referral_link(code: str) -> str:
        return f"{settings.FRONTEND_BASE_URL.rstrip('/')}/signup?ref={code}"

    @staticmethod
    def find_referrer(db: Session, code: str) -> Optional[User]:
        return db.query(User).filter(User.referral_code == code.strip().upper()).first()

    @staticmethod
    def validate_code(db: Session, code: str) -> dict:
        referrer = ReferralService.find_referrer(db, code)
        if not referrer or not referrer.is_active:
            return {"valid": False, "message": "Invalid referral code"}
        return {"valid": True, "referrer_name": referrer.full_name}

    @staticmethod
    def process_signup(db: Session, new_user: User, code: str) -> Referral:
        """Attribute a new account to the owner of ``code``. The caller commits."""
        referrer = ReferralService.find_referrer(db, code)
        if not referrer:
            raise NotFoundError("Referral code")
        if referrer.id == new_user.id:
            raise ValidationError("You cannot refer yourself")
        existing = db.query(Referral).filter(Referral.referred_id == new_user.id).first()
        if existing:
            raise ConflictError("This account was already referred")

        referral = Referral(
            referrer_id=referrer.id,
            referred_id=new_user.id,
            referral_code=referrer.referral_code,
            status="pending",
        )
        db.add(referral)
        logger.info(f"User {new_user.id} referred by {referrer.id}")
        return referral

    @staticmethod
    def complete_for_buyer(db: Session, buyer: User) -> Optional[UserReward]:
        """Complete the buyer's pending referral on their first order. The caller commits."""
        referral = db.query(Referral).filter(
            Referral.referred_id == buyer.id,
            Referral.status == "pending",
        ).first()
        if not referral:
            return None

        referral.status = "completed"
        referral.completed_at = utcnow()
        reward = UserReward(
            user_id=referral.referrer_id,
            referral_id=referral.id,
            reward_type="referral_bonus",
            amount=settings.REFERRAL_REWARD_AMOUNT,
        )
        db.add(reward)
        enqueue_notification(db, referral.referrer_id, "referral_completed", {
            "referred_name": buyer.full_name,
            "amount": settings.REFERRAL_REWARD_AMOUNT,
        })
        logger.info(f"Referral {referral.id} completed, rewarding user {referral.referrer_id}")
        return reward

    @staticmethod
    def stats(db: Session, user: User) -> dict:
        code = ReferralService.ensure_code(db, user)
        rows = (
            db.query(Referral.status, func.count(Referral.id))
            .filter(Referral.referrer_id == user.id)
            .group_by(Referral.status)
            .all()
        )
        counts = {status: count for status, count in rows}
        total_rewards = db.query(func.coalesce(func.sum(UserReward.amount), 0.0)).filter(
            UserReward.user_id == user.id
        ).scalar()
        return {
            "referral_code": code,
            "total_referrals": sum(counts.values()),
            "completed_referrals": counts.get("completed", 0),
            "pending_referrals": counts.get("pending", 0),
            "total_rewards": float(total_rewards or 0),
        }

    @staticmethod
    def create_invite(db: Session, user: User, email: str) -> dict:
        email = email.strip().lower()
        if email == user.email.lower():
            raise ValidationError("You cannot invite yourself")
        if db.query(User.id).filter(func.lower(User.email) == email).first():
            raise ConflictError("This email already has an account")

        code = ReferralService.ensure_code(db, user)
        db.add(ReferralInvite(referrer_id=user.id, email=email))
        db.commit()
        return {"email": email, "referral_code": code, "referral_link": ReferralService.referral_link(code)}
