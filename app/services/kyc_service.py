# app/services/kyc_service.py

import logging
import re
import uuid
from typing import List, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.kyc import KYCDocument, KYCVerification
from app.models.user import KYCStatus, User, UserRole
from app.schemas.kyc import KYC_CONTENT_TYPES, UploadUrlRequest
from app.services.notification_service import enqueue_admin_notification, enqueue_notification
from app.services.storage_service import StorageService
from app.utils.pagination import paginate
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def _storage_key(user_id: int, file_name: str) -> str:
    safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", file_name)
    return f"kyc/{user_id}/{uuid.uuid4().hex}-{safe_name}"


def _active_documents(db: Session, user_id: int):
    return db.query(KYCDocument).filter(KYCDocument.user_id == user_id, KYCDocument.is_deleted.is_(False))


def _check_file(content_type: str, size: int, file_name: str) -> None:
    if content_type not in KYC_CONTENT_TYPES:
        raise ValidationError(f"{file_name}: only PDF, JPEG and PNG files are accepted")
    if size > settings.KYC_MAX_FILE_SIZE:
        raise ValidationError(f"{file_name}: file exceeds 10MB")


def _check_capacity(db: Session, user_id: int, incoming: int) -> None:
    if _active_documents(db, user_id).count() + incoming > settings.KYC_MAX_FILES:
        raise ValidationError(f"At most {settings.KYC_MAX_FILES} KYC documents are allowed")


def _ensure_editable(user: User) -> None:
    if user.kyc_status in (KYCStatus.pending.value, KYCStatus.verified.value):
        raise ConflictError(f"KYC is already {user.kyc_status}")


def get_document(db: Session, document_id: int, user: User) -> KYCDocument:
    document = db.query(KYCDocument).filter(
        KYCDocument.id == document_id,
        KYCDocument.is_deleted.is_(False),
    ).first()
    if not document:
        raise NotFoundError("Document", document_id)
    if document.user_id != user.id and user.role != UserRole.admin.value:
        raise ForbiddenError("You do not have access to this document")
    return document


def create_upload_url(db: Session, user: User, data: UploadUrlRequest, storage: StorageService) -> dict:
    _ensure_editable(user)
    _check_file(data.content_type, data.file_size, data.file_name)
    _check_capacity(db, user.id, 1)

    key = _storage_key(user.id, data.file_name)
    url = storage.presigned_upload_url(settings.KYC_BUCKET_NAME, key, data.content_type)
    document = KYCDocument(
        user_id=user.id,
        document_type=data.document_type,
        storage_key=key,
        file_name=data.file_name,
        content_type=data.content_type,
        file_size=data.file_size,
        upload_status="pending",
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    return {
        "document_id": document.id,
        "upload_url": url,
        "storage_key": key,
        "expires_in": settings.SIGNED_URL_EXPIRY_SECONDS,
    }


def confirm_upload(db: Session, user: User, document_id: int, storage: StorageService) -> KYCDocument:
    """Mark a presigned upload as done once the stored object matches the declared size."""
    document = get_document(db, document_id, user)
    if document.user_id != user.id:
        raise ForbiddenError("You do not have access to this document")
    if document.upload_status == "uploaded":
        return document

    size = storage.object_size(settings.KYC_BUCKET_NAME, document.storage_key)
    if size is None:
        raise ValidationError("File has not been uploaded yet")
    if size != document.file_size:
        raise ValidationError(f"Uploaded file size {size} does not match declared size {document.file_size}")

    document.upload_status = "uploaded"
    document.uploaded_at = utcnow()
    db.commit()
    db.refresh(document)
    return document


def upload_documents(
    db: Session,
    user: User,
    document_type: str,
    files: List[Tuple[str, str, bytes]],
    storage: StorageService,
) -> List[KYCDocument]:
    """Direct multipart upload of ``(filename, content_type, content)`` tuples."""
    _ensure_editable(user)
    if not files:
        raise ValidationError("No files provided")
    for file_name, content_type, content in files:
        _check_file(content_type, len(content), file_name)
    _check_capacity(db, user.id, len(files))

    documents = []
    for file_name, content_type, content in files:
        key = storage.put_object(settings.KYC_BUCKET_NAME, _storage_key(user.id, file_name), content, content_type)
        document = KYCDocument(
            user_id=user.id,
            document_type=document_type,
            storage_key=key,
            file_name=file_name,
            content_type=content_type,
            file_size=len(content),
            upload_status="uploaded",
            uploaded_at=utcnow(),
        )
        db.add(document)
        documents.append(document)
    db.commit()
    for document in documents:
        db.refresh(document)
    logger.info(f"User {user.id} uploaded {len(documents)} KYC document(s)")
    return documents


def list_documents(db: Session, user: User) -> List[KYCDocument]:
    return _active_documents(db, user.id).order_by(KYCDocument.created_at.desc()).all()


def view_url(db: Session, user: User, document_id: int, storage: StorageService) -> dict:
    document = get_document(db, document_id, user)
    if document.upload_status != "uploaded":
        raise ConflictError("Document upload has not been confirmed")
    return {
        "document_id": document.id,
        "url": storage.presigned_download_url(settings.KYC_BUCKET_NAME, document.storage_key),
        "expires_in": settings.SIGNED_URL_EXPIRY_SECONDS,
    }


def delete_document(db: Session, user: User, document_id: int) -> None:
    document = get_document(db, document_id, user)
    if document.verification_id is not None:
        raise ConflictError("Documents attached to a submitted verification cannot be deleted")
    document.is_deleted = True
    document.deleted_at = utcnow()
    db.commit()


def submit_verification(db: Session, user: User) -> KYCVerification:
    _ensure_editable(user)
    documents = _active_documents(db, user.id).filter(KYCDocument.verification_id.is_(None)).all()
    if not documents:
        raise ValidationError("Upload at least one document before submitting")
    if any(d.upload_status != "uploaded" for d in documents):
        raise ValidationError("Confirm all document uploads before submitting")

    verification = KYCVerification(user_id=user.id, status="pending")
    db.add(verification)
    db.flush()
    for document in documents:
        document.verification_id = verification.id

    user.kyc_status = KYCStatus.pending.value
    user.current_kyc_verification_id = verification.id
    enqueue_admin_notification(db, "kyc_submitted", {
        "user_name": user.full_name,
        "user_email": user.email,
        "document_count": len(documents),
    })
    db.commit()
    db.refresh(verification)
    logger.info(f"KYC verification {verification.id} submitted by user {user.id}")
    return verification


def kyc_status(db: Session, user: User) -> dict:
    current = None
    if user.current_kyc_verification_id:
        current = db.query(KYCVerification).filter(
            KYCVerification.id == user.current_kyc_verification_id
        ).first()
    uploaded = _active_documents(db, user.id).filter(KYCDocument.upload_status == "uploaded").count()
    return {
        "kyc_status": user.kyc_status,
        "is_kyc_verified": user.is_kyc_verified,
        "current_verification": current,
        "documents_uploaded": uploaded,
    }


def pending_verifications(db: Session, page: int, limit: int) -> dict:
    query = db.query(KYCVerification).filter(KYCVerification.status == "pending")
    return paginate(query.order_by(KYCVerification.submitted_at.asc()), page, limit)


def review_verification(db: Session, verification_id: int, action: str, admin_id: int,
                        rejection_reason: str = None) -> KYCVerification:
    verification = db.query(KYCVerification).filter(KYCVerification.id == verification_id).first()
    if not verification:
        raise NotFoundError("Verification", verification_id)
    if verification.status != "pending":
        raise ConflictError(f"Verification is already {verification.status}")
    if action == "reject" and not (rejection_reason and rejection_reason.strip()):
        raise ValidationError("A rejection reason is required")

    user = verification.user
    verification.reviewed_by = admin_id
    verification.reviewed_at = utcnow()
    if action == "approve":
        verification.status = "approved"
        user.kyc_status = KYCStatus.verified.value
        user.is_kyc_verified = True
        enqueue_notification(db, user.id, "kyc_approved", {"user_name": user.full_name})
    else:
        verification.status = "rejected"
        verification.rejection_reason = rejection_reason.strip()
        user.kyc_status = KYCStatus.rejected.value
        user.is_kyc_verified = False
        enqueue_notification(db, user.id, "kyc_rejected", {
            "user_name": user.full_name,
            "reason": verification.rejection_reason,
        })
    db.commit()
    db.refresh(verification)
    logger.info(f"KYC verification {verification_id} {verification.status} by admin {admin_id}")
    return verification
