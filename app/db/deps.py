from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session
from app.core.exceptions import ForbiddenError
from app.core.security import decode_access_token
from app.db.session import SessionLocal
from app.models.user import User, RevokedToken, UserRole
from app.services.email_service import EmailService
from app.services.notification_service import NotificationDispatcher
from app.services.storage_service import StorageService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/signin")


# Dependency to get DB
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_payload(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> dict:
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    if payload.get("sub") is None or payload.get("jti") is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    revoked = db.query(RevokedToken).filter(RevokedToken.jti == payload["jti"]).first()
    if revoked:
        raise HTTPException(status_code=401, detail="Token has been revoked")
    return payload


# Dependency to get the current user from token
def get_current_user(payload: dict = Depends(get_token_payload), db: Session = Depends(get_db)) -> User:
    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    return user


def require_roles(*roles: UserRole):
    allowed = {r.value for r in roles}

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return checker


get_current_admin = require_roles(UserRole.admin)
get_current_seller = require_roles(UserRole.seller)
get_current_buyer = require_roles(UserRole.buyer)
get_current_delivery_partner = require_roles(UserRole.delivery_partner)


def ensure_owner_or_admin(user: User, owner_id: int) -> None:
    if user.role != UserRole.admin.value and user.id != owner_id:
        raise ForbiddenError("You do not have access to this resource")


def get_storage_service() -> StorageService:
    return StorageService()


def get_email_service() -> EmailService:
    return EmailService()


def get_notification_dispatcher(email_service: EmailService = Depends(get_email_service)) -> NotificationDispatcher:
    return NotificationDispatcher(email_service=email_service)
