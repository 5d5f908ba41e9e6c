from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Literal
from datetime import datetime

from app.schemas.common import PageMeta

DocumentType = Literal["aadhaar", "pan", "passport", "driving_license", "voter_id", "selfie"]
KYC_CONTENT_TYPES = ("application/pdf", "image/jpeg", "image/png")


class UploadUrlRequest(BaseModel):
    document_type: DocumentType
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: Literal["application/pdf", "image/jpeg", "image/png"]
    file_size: int = Field(..., gt=0)


class UploadUrlOut(BaseModel):
    document_id: int
    upload_url: str
    storage_key: str
    expires_in: int


class ConfirmUploadRequest(BaseModel):
    document_id: int


class KYCDocumentOut(BaseModel):
    id: int
    document_type: str
    file_name: str
    content_type: str
    file_size: int
    upload_status: str
    verification_id: Optional[int] = None
    created_at: datetime
    uploaded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ViewUrlOut(BaseModel):
    document_id: int
    url: str
    expires_in: int


class KYCVerificationOut(BaseModel):
    id: int
    user_id: int
    status: str
    submitted_at: datetime
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    documents: List[KYCDocumentOut] = []

    model_config = ConfigDict(from_attributes=True)


class KYCStatusOut(BaseModel):
    kyc_status: str
    is_kyc_verified: bool
    current_verification: Optional[KYCVerificationOut] = None
    documents_uploaded: int


class KYCReviewRequest(BaseModel):
    action: Literal["approve", "reject"]
    rejection_reason: Optional[str] = None


class KYCVerificationPage(PageMeta):
    items: List[KYCVerificationOut]
