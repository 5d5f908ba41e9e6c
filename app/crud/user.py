import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.security import hash_password, verify_password
from app.models.user import RevokedToken, User, UserRole
from app.schemas.user import BankDetailsUpdate, ProfileUpdate, SignupRequest
from app.services.notification_service import enqueue_admin_notification, enqueue_notification
from app.services.referral_service import ReferralService
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def create_user(db: Session, data: SignupRequest) -> User:
    if get_user_by_email(db, data.email):
        raise ConflictError("An account with this email already exists")

    user = User(
        email=data.email.lower(),
        password_hash=hash_password(data.password),
        full_name=data.full_name.strip(),
        role=data.role,
        phone_number=data.phone_number,
        addresses=[],
    )
    user.referral_code = ReferralService.generate_code(db, user.full_name)
    db.add(user)
    db.flush()

    enqueue_notification(db, user.id, "account_created")
    enqueue_admin_notification(db, "new_user_registered", {
        "user_name": user.full_name,
        "user_role": user.role,
    })
    db.commit()
    db.refresh(user)

    # a bad referral code never blocks signup
    if data.referral_code:
        try:
            ReferralService.process_signup(db, user, data.referral_code)
            db.commit()
        except (NotFoundError, ValidationError, ConflictError) as e:
            db.rollback()
            logger.warning(f"Referral code '{data.referral_code}' ignored for user {user.id}: {e.message}")

    logger.info(f"User {user.id} signed up as {user.role}")
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def revoke_token(db: Session, jti: str, user_id: int, expires_at: Optional[datetime]) -> None:
    if db.query(RevokedToken).filter(RevokedToken.jti == jti).first():
        return
    db.add(RevokedToken(jti=jti, user_id=user_id, expires_at=expires_at))
    db.commit()


def update_profile(db: Session, user: User, data: ProfileUpdate) -> User:
    update_data = data.model_dump(exclude_unset=True)
    if "addresses" in update_data and update_data["addresses"] is not None:
        update_data["addresses"] = [a.model_dump() for a in data.addresses]

    for field, value in update_data.items():
        if value is not None:
            setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def update_bank_details(db: Session, user: User, data: BankDetailsUpdate) -> User:
    user.bank_name = data.bank_name
    user.account_holder_name = data.account_holder_name
    user.account_number = data.account_number
    user.ifsc_code = data.ifsc_code
    user.upi_id = data.upi_id
    db.commit()
    db.refresh(user)
    logger.info(f"Bank details updated for user {user.id}")
    return user


def bank_details_view(user: User) -> dict:
    return {
        "bank_name": user.bank_name,
        "account_holder_name": user.account_holder_name,
        "account_number_masked": user.get_masked_account_number(),
        "ifsc_code": user.ifsc_code,
        "upi_id": user.upi_id,
        "has_bank_details": user.has_bank_details(),
    }


def list_users(db: Session, page: int, limit: int, role: Optional[str] = None,
               search: Optional[str] = None, kyc_status: Optional[str] = None) -> dict:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if kyc_status:
        query = query.filter(User.kyc_status == kyc_status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.full_name.ilike(pattern), User.email.ilike(pattern)))
    return paginate(query.order_by(User.created_at.desc()), page, limit)


def set_user_active(db: Session, user_id: int, is_active: bool) -> User:
    user = get_user(db, user_id)
    user.is_active = is_active
    db.commit()
    db.refresh(user)
    return user


def set_user_role(db: Session, user_id: int, role: str) -> User:
    if role not in {r.value for r in UserRole}:
        raise ValidationError(f"Invalid role: {role}")
    user = get_user(db, user_id)
    user.role = role
    db.commit()
    db.refresh(user)
    return user
