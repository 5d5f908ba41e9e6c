from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.db.deps import get_current_user, get_db, get_storage_service
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.kyc import (
    ConfirmUploadRequest,
    DocumentType,
    KYCDocumentOut,
    KYCStatusOut,
    KYCVerificationOut,
    UploadUrlOut,
    UploadUrlRequest,
    ViewUrlOut,
)
from app.services import kyc_service
from app.services.storage_service import StorageService

router = APIRouter()


@router.post("/upload-url", response_model=UploadUrlOut, status_code=status.HTTP_201_CREATED)
def create_upload_url(
    data: UploadUrlRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    return kyc_service.create_upload_url(db, user, data, storage)


@router.post("/confirm-upload", response_model=KYCDocumentOut)
def confirm_upload(
    data: ConfirmUploadRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    return kyc_service.confirm_upload(db, user, data.document_id, storage)


@router.post("/upload", response_model=List[KYCDocumentOut], status_code=status.HTTP_201_CREATED)
async def upload_documents(
    document_type: DocumentType = Form(...),
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    payload = []
    for f in files:
        payload.append((f.filename or "document", f.content_type, await f.read()))
    return kyc_service.upload_documents(db, user, document_type, payload, storage)


@router.get("/documents", response_model=List[KYCDocumentOut])
def list_documents(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return kyc_service.list_documents(db, user)


@router.get("/documents/{document_id}/view-url", response_model=ViewUrlOut)
def view_url(
    document_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    return kyc_service.view_url(db, user, document_id, storage)


@router.delete("/documents/{document_id}", response_model=MessageResponse)
def delete_document(document_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    kyc_service.delete_document(db, user, document_id)
    return {"message": "Document deleted"}


@router.post("/submit", response_model=KYCVerificationOut, status_code=status.HTTP_201_CREATED)
def submit(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return kyc_service.submit_verification(db, user)


@router.get("/status", response_model=KYCStatusOut)
def kyc_status(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return kyc_service.kyc_status(db, user)
