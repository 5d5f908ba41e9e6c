from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.crud import admin as crud_admin
from app.db.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.promo import (
    PromoCodePage,
    PromoValidateRequest,
    PromoValidationOut,
    ReferralInviteRequest,
    ReferralStats,
    ReferralValidateRequest,
)
from app.services import promo_service
from app.services.referral_service import ReferralService

router = APIRouter()


@router.get("/promo-codes", response_model=PromoCodePage)
def active_promo_codes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return crud_admin.list_promo_codes(db, page, limit, active_only=True)


@router.post("/promo-codes/validate", response_model=PromoValidationOut)
def validate_promo_code(
    data: PromoValidateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Check a code against an order total without using it up."""
    return promo_service.validate_promo_code(db, data.code, user, data.order_total)


@router.post("/promo-codes/apply", response_model=PromoValidationOut)
def apply_promo_code(
    data: PromoValidateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    # the code is redeemed when the order is placed
    evaluation = promo_service.evaluate_promo(db, data.code, user, data.order_total)
    return {
        "valid": True,
        "code": evaluation.promo.code,
        "discount_amount": evaluation.discount_amount,
        "final_amount": evaluation.final_amount,
        "message": "Promo code applied",
    }


@router.get("/referrals/code")
def my_referral_code(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    code = ReferralService.ensure_code(db, user)
    return {"referral_code": code, "referral_link": ReferralService.referral_link(code)}


@router.post("/referrals/validate")
def validate_referral_code(data: ReferralValidateRequest, db: Session = Depends(get_db)):
    return ReferralService.validate_code(db, data.referral_code)


@router.get("/referrals/stats", response_model=ReferralStats)
def referral_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ReferralService.stats(db, user)


@router.post("/referrals/invite")
def invite(data: ReferralInviteRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ReferralService.create_invite(db, user, data.email)
