from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Boolean, BigInteger
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.utils.timeutils import utcnow
import enum


class KYCDocumentType(str, enum.Enum):
    aadhaar = "aadhaar"
    pan = "pan"
    passport = "passport"
    driving_license = "driving_license"
    voter_id = "voter_id"
    selfie = "selfie"


class KYCDocument(Base):
    __tablename__ = "kyc_documents"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    verification_id = Column(Integer, ForeignKey("kyc_verifications.id"), nullable=True)
    document_type = Column(String(30), nullable=False)
    storage_key = Column(String, nullable=False, unique=True)
    file_name = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    upload_status = Column(String(20), nullable=False, default="pending")  # pending | uploaded
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    uploaded_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)


class KYCVerification(Base):
    __tablename__ = "kyc_verifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")  # pending | approved | rejected
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    reviewed_by = Column(Integer, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    user = relationship("User", foreign_keys=[user_id])
    documents = relationship("KYCDocument", foreign_keys=[KYCDocument.verification_id])
