import pytest

from app.core.config import settings
from app.core.exceptions import ConflictError, ForbiddenError, ValidationError
from app.models.kyc import KYCDocument
from app.models.notification import NotificationOutbox
from app.schemas.kyc import UploadUrlRequest
from app.services import kyc_service


def _request(**fields):
    values = {
        "document_type": "aadhaar",
        "file_name": "aadhaar front.jpg",
        "content_type": "image/jpeg",
        "file_size": 4,
    }
    values.update(fields)
    return UploadUrlRequest(**values)


def _uploaded(db, user, storage, body=b"scan"):
    ticket = kyc_service.create_upload_url(db, user, _request(file_size=len(body)), storage)
    storage.objects[(settings.KYC_BUCKET_NAME, ticket["storage_key"])] = body
    return kyc_service.confirm_upload(db, user, ticket["document_id"], storage)


def test_upload_url_sanitises_key(db, make_user, storage):
    user = make_user()
    ticket = kyc_service.create_upload_url(db, user, _request(), storage)
    assert ticket["storage_key"].startswith(f"kyc/{user.id}/")
    assert ticket["storage_key"].endswith("-aadhaar_front.jpg")
    assert db.query(KYCDocument).one().upload_status == "pending"


def test_oversized_file_rejected(db, make_user, storage):
    with pytest.raises(ValidationError, match="10MB"):
        kyc_service.create_upload_url(db, make_user(), _request(file_size=11 * 1024 * 1024), storage)


def test_confirm_before_upload(db, make_user, storage):
    user = make_user()
    ticket = kyc_service.create_upload_url(db, user, _request(), storage)
    with pytest.raises(ValidationError, match="not been uploaded"):
        kyc_service.confirm_upload(db, user, ticket["document_id"], storage)


def test_confirm_size_mismatch(db, make_user, storage):
    user = make_user()
    ticket = kyc_service.create_upload_url(db, user, _request(file_size=10), storage)
    storage.objects[(settings.KYC_BUCKET_NAME, ticket["storage_key"])] = b"short"
    with pytest.raises(ValidationError, match="does not match"):
        kyc_service.confirm_upload(db, user, ticket["document_id"], storage)


def test_other_user_cannot_confirm(db, make_user, storage):
    owner = make_user()
    ticket = kyc_service.create_upload_url(db, owner, _request(), storage)
    with pytest.raises(ForbiddenError):
        kyc_service.confirm_upload(db, make_user(), ticket["document_id"], storage)


def test_capacity_limit(db, make_user, storage):
    user = make_user()
    files = [(f"doc{i}.pdf", "application/pdf", b"%PDF") for i in range(settings.KYC_MAX_FILES)]
    kyc_service.upload_documents(db, user, "pan", files, storage)
    with pytest.raises(ValidationError, match="At most"):
        kyc_service.upload_documents(db, user, "pan", [("extra.pdf", "application/pdf", b"%PDF")], storage)


def test_submit_requires_confirmed_uploads(db, make_user, storage):
    user = make_user()
    with pytest.raises(ValidationError, match="at least one"):
        kyc_service.submit_verification(db, user)

    kyc_service.create_upload_url(db, user, _request(), storage)
    with pytest.raises(ValidationError, match="Confirm"):
        kyc_service.submit_verification(db, user)


def test_submit_then_approve(db, make_user, storage):
    user = make_user("seller")
    admin = make_user("admin")
    document = _uploaded(db, user, storage)

    verification = kyc_service.submit_verification(db, user)
    db.refresh(document)
    assert user.kyc_status == "pending"
    assert document.verification_id == verification.id
    assert db.query(NotificationOutbox).filter(NotificationOutbox.event == "kyc_submitted").count() == 1

    with pytest.raises(ConflictError):
        kyc_service.delete_document(db, user, document.id)
    with pytest.raises(ConflictError):
        kyc_service.submit_verification(db, user)

    kyc_service.review_verification(db, verification.id, "approve", admin.id)
    db.refresh(user)
    assert user.kyc_status == "verified"
    assert user.is_kyc_verified is True


def test_reject_needs_reason_and_reopens_editing(db, make_user, storage):
    user = make_user()
    admin = make_user("admin")
    _uploaded(db, user, storage)
    verification = kyc_service.submit_verification(db, user)

    with pytest.raises(ValidationError):
        kyc_service.review_verification(db, verification.id, "reject", admin.id, "  ")

    reviewed = kyc_service.review_verification(db, verification.id, "reject", admin.id, "Photo unreadable")
    assert reviewed.rejection_reason == "Photo unreadable"
    db.refresh(user)
    assert user.kyc_status == "rejected"

    with pytest.raises(ConflictError):
        kyc_service.review_verification(db, verification.id, "approve", admin.id)

    # a rejected user may upload again
    _uploaded(db, user, storage, body=b"new scan")
    assert kyc_service.kyc_status(db, user)["documents_uploaded"] == 2


def test_soft_delete_hides_document(db, make_user, storage):
    user = make_user()
    document = _uploaded(db, user, storage)
    kyc_service.delete_document(db, user, document.id)
    assert kyc_service.list_documents(db, user) == []
    assert db.query(KYCDocument).one().is_deleted is True
