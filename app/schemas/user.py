import re
from datetime import datetime
from typing import List, Optional, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.schemas.common import PageMeta

PHONE_PATTERN = re.compile(r"^\+?\d{10,15}$")


def _check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain a number")
    if not re.search(r"[^A-Za-z0-9]", value):
        raise ValueError("Password must contain a special character")
    return value


class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str = Field(..., min_length=2, max_length=150)
    role: Literal["buyer", "seller"] = "buyer"
    phone_number: Optional[str] = None
    referral_code: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        if v is not None and not PHONE_PATTERN.match(v):
            raise ValueError("Phone number must be 10 to 15 digits")
        return v


class SigninRequest(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    full_name: str
    role: str
    phone_number: Optional[str] = None
    kyc_status: str
    is_kyc_verified: bool
    referral_code: Optional[str] = None
    email_notifications: bool
    whatsapp_notifications: bool
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class Address(BaseModel):
    label: Optional[str] = None
    line1: str
    line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    pincode: str


class ProfileOut(UserOut):
    addresses: List[Address] = []


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=150)
    phone_number: Optional[str] = None
    email_notifications: Optional[bool] = None
    whatsapp_notifications: Optional[bool] = None
    addresses: Optional[List[Address]] = None

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        if v is not None and not PHONE_PATTERN.match(v):
            raise ValueError("Phone number must be 10 to 15 digits")
        return v


class BankDetailsUpdate(BaseModel):
    bank_name: str = Field(..., min_length=2)
    account_holder_name: str = Field(..., min_length=2)
    account_number: str = Field(..., pattern=r"^\d{9,18}$")
    ifsc_code: str = Field(..., pattern=r"^[A-Za-z]{4}0[A-Za-z0-9]{6}$")
    upi_id: Optional[str] = None


class BankDetailsOut(BaseModel):
    bank_name: Optional[str] = None
    account_holder_name: Optional[str] = None
    account_number_masked: Optional[str] = None
    ifsc_code: Optional[str] = None
    upi_id: Optional[str] = None
    has_bank_details: bool = False


class UserPage(PageMeta):
    items: List[UserOut]


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserRoleUpdate(BaseModel):
    role: Literal["buyer", "seller", "admin", "delivery_partner"]
