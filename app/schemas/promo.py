from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Literal
from datetime import datetime

from app.schemas.common import PageMeta


class PromoCodeCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=50)
    description: Optional[str] = None
    discount_type: Literal["percentage", "flat"] = "percentage"
    discount_value: float = Field(..., gt=0)
    max_discount_amount: Optional[float] = Field(None, gt=0)
    min_order_amount: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    eligibility: Literal["all", "new_users", "buyers", "sellers", "specific_users"] = "all"
    specific_user_ids: List[int] = []
    expires_at: Optional[datetime] = None
    is_active: bool = True
    required_referrals: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def check_values(self):
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.eligibility == "specific_users" and not self.specific_user_ids:
            raise ValueError("specific_user_ids is required for specific_users eligibility")
        return self


class PromoCodeUpdate(BaseModel):
    description: Optional[str] = None
    max_discount_amount: Optional[float] = Field(None, gt=0)
    min_order_amount: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None


class PromoCodeOut(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: float
    max_discount_amount: Optional[float] = None
    min_order_amount: Optional[float] = None
    usage_limit: Optional[int] = None
    usage_count: int
    eligibility: str
    is_active: bool
    expires_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PromoCodePage(PageMeta):
    items: List[PromoCodeOut]


class PromoValidateRequest(BaseModel):
    code: str
    order_total: float = Field(..., gt=0)


class PromoValidationOut(BaseModel):
    valid: bool
    code: str
    discount_amount: float = 0.0
    final_amount: Optional[float] = None
    message: Optional[str] = None


class ApplyPromoToOrderRequest(BaseModel):
    code: str


class ReferralValidateRequest(BaseModel):
    referral_code: str


class ReferralInviteRequest(BaseModel):
    email: str = Field(..., min_length=5)


class ReferralOut(BaseModel):
    id: int
    referrer_id: int
    referred_id: int
    referral_code: str
    status: str
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReferralPage(PageMeta):
    items: List[ReferralOut]


class ReferralStats(BaseModel):
    referral_code: str
    total_referrals: int
    completed_referrals: int
    pending_referrals: int
    total_rewards: float


class ReferralRewardCreate(BaseModel):
    promo_code_id: int
    required_referrals: int = Field(..., ge=1)
