# app/models/user.py

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, Index
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.core.config import settings
from app.utils.timeutils import utcnow
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from typing import Optional
import base64
import enum
import logging

logger = logging.getLogger(__name__)


class UserRole(str, enum.Enum):
    buyer = "buyer"
    seller = "seller"
    admin = "admin"
    delivery_partner = "delivery_partner"


class KYCStatus(str, enum.Enum):
    not_started = "not_started"
    pending = "pending"
    verified = "verified"
    rejected = "rejected"
    suspicious = "suspicious"
    inactive = "inactive"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String(150), nullable=False)
    role = Column(String(30), nullable=False, default=UserRole.buyer.value, index=True)
    phone_number = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Notification preferences
    email_notifications = Column(Boolean, default=True, nullable=False)
    whatsapp_notifications = Column(Boolean, default=False, nullable=False)

    # KYC
    kyc_status = Column(String(20), default=KYCStatus.not_started.value, nullable=False)
    is_kyc_verified = Column(Boolean, default=False, nullable=False)
    current_kyc_verification_id = Column(Integer, nullable=True)

    # Referrals
    referral_code = Column(String(20), unique=True, nullable=True, index=True)

    # Saved addresses: [{"label": ..., "line1": ..., "city": ..., "pincode": ...}]
    addresses = Column(JSON, default=list)

    # Payout details, account number and IFSC are stored encrypted
    bank_name = Column(String(100), nullable=True)
    account_holder_name = Column(String(100), nullable=True)
    account_number_encrypted = Column(Text, nullable=True)
    ifsc_code_encrypted = Column(Text, nullable=True)
    upi_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    products = relationship("Product", back_populates="seller", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_users_role_created", "role", "created_at"),
    )

    @classmethod
    def _get_encryption_key(cls) -> bytes:
        """Fernet key from BANKING_ENCRYPTION_KEY, or a derived key outside production."""
        if settings.BANKING_ENCRYPTION_KEY:
            return settings.BANKING_ENCRYPTION_KEY.encode()

        if settings.ENVIRONMENT != "production":
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=b"rental-marketplace-dev-salt",
                iterations=100000,
            )
            return base64.urlsafe_b64encode(kdf.derive(settings.SECRET_KEY.encode()))

        raise ValueError("BANKING_ENCRYPTION_KEY must be set in production")

    def encrypt_banking_data(self, data: str) -> Optional[str]:
        if not data or not data.strip():
            return None
        fernet = Fernet(self._get_encryption_key())
        return fernet.encrypt(data.strip().encode("utf-8")).decode("utf-8")

    def decrypt_banking_data(self, encrypted_data: str) -> Optional[str]:
        if not encrypted_data:
            return None
        try:
            fernet = Fernet(self._get_encryption_key())
            return fernet.decrypt(encrypted_data.encode("utf-8")).decode("utf-8")
        except InvalidToken:
            logger.error(f"Could not decrypt banking data for user {self.id}, key mismatch")
            return None

    @property
    def account_number(self) -> Optional[str]:
        return self.decrypt_banking_data(self.account_number_encrypted)

    @account_number.setter
    def account_number(self, value: Optional[str]):
        self.account_number_encrypted = self.encrypt_banking_data(value) if value else None

    @property
    def ifsc_code(self) -> Optional[str]:
        return self.decrypt_banking_data(self.ifsc_code_encrypted)

    @ifsc_code.setter
    def ifsc_code(self, value: Optional[str]):
        self.ifsc_code_encrypted = self.encrypt_banking_data(value.upper()) if value else None

    def get_masked_account_number(self) -> Optional[str]:
        """Masked account number for display"""
        account = self.account_number
        if not account or len(account) < 4:
            return None
        return "****" + account[-4:]

    def has_bank_details(self) -> bool:
        return self.account_number_encrypted is not None and self.ifsc_code_encrypted is not None


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, default=utcnow, nullable=False)
