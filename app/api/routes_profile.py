from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.crud import user as crud_user
from app.db.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.kyc import KYCStatusOut
from app.schemas.user import BankDetailsOut, BankDetailsUpdate, ProfileOut, ProfileUpdate
from app.services import kyc_service

router = APIRouter()


@router.get("/", response_model=ProfileOut)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.put("/", response_model=ProfileOut)
def update_profile(data: ProfileUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return crud_user.update_profile(db, user, data)


@router.get("/bank-details", response_model=BankDetailsOut)
def get_bank_details(user: User = Depends(get_current_user)):
    return crud_user.bank_details_view(user)


@router.put("/bank-details", response_model=BankDetailsOut)
def update_bank_details(
    data: BankDetailsUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Account number and IFSC are stored encrypted; only a masked number is returned."""
    user = crud_user.update_bank_details(db, user, data)
    return crud_user.bank_details_view(user)


@router.get("/kyc-status", response_model=KYCStatusOut)
def get_kyc_status(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return kyc_service.kyc_status(db, user)
