from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Literal, Any, Dict
from datetime import date, datetime

from app.schemas.common import PageMeta


class OrderCreate(BaseModel):
    product_id: int
    rental_start_date: date
    rental_end_date: date
    try_on_requested: bool = False
    promo_code: Optional[str] = None
    delivery_address: Optional[Dict[str, Any]] = None
    pickup_address: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.rental_end_date <= self.rental_start_date:
            raise ValueError("rental_end_date must be after rental_start_date")
        return self


class OrderOut(BaseModel):
    id: int
    version: int
    buyer_id: int
    seller_id: int
    product_id: int
    delivery_partner_id: Optional[int] = None
    promo_code_id: Optional[int] = None

    rental_start_date: date
    rental_end_date: date
    rental_duration_days: int
    expected_return_date: date
    actual_return_date: Optional[date] = None
    is_late_return: bool

    total_rental_price: float
    security_deposit: float
    try_on_fee: float
    discount_amount: float
    total_amount: float
    commission_amount: float
    late_fee: float
    damage_fee: float
    security_deposit_refund_amount: Optional[float] = None

    order_status: str
    delivery_status: str
    payment_status: str
    damage_claim_status: str
    security_deposit_status: str
    lifecycle_state: str

    damage_claim_description: Optional[str] = None
    damage_claim_photos: Optional[List[str]] = None
    pickup_address: Optional[Dict[str, Any]] = None
    delivery_address: Optional[Dict[str, Any]] = None
    delivery_assigned_at: Optional[datetime] = None
    collection_photo_url: Optional[str] = None
    admin_notes: Optional[str] = None
    last_admin_action: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderPage(PageMeta):
    items: List[OrderOut]


class OrderStatusUpdate(BaseModel):
    status: str


class DeliveryStatusUpdate(BaseModel):
    status: str
    delivery_partner_id: Optional[int] = None


class PaymentStatusUpdate(BaseModel):
    status: str


class LateFeeRequest(BaseModel):
    amount: float


class DamageClaimDecision(BaseModel):
    action: Literal["approve", "reject"]
    amount: Optional[float] = None


class SecurityDepositRequest(BaseModel):
    action: Literal["release", "partially_refunded", "forfeited"]
    refund_amount: Optional[float] = None


class ReturnRequest(BaseModel):
    return_date: date
    photo_url: Optional[str] = None


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=3)


class DamageReportRequest(BaseModel):
    description: str = Field(..., min_length=5)
    photos: List[str] = []


class ExtendRentalRequest(BaseModel):
    new_end_date: date


class AssignDeliveryRequest(BaseModel):
    delivery_partner_id: int
    assignment_type: Literal["delivery", "return_pickup"] = "delivery"
    notes: Optional[str] = None


class AdminNoteRequest(BaseModel):
    note: str = Field(..., min_length=1)


class OrderAdminUpdate(BaseModel):
    """Partial update of the free-form fields an admin may correct."""

    admin_notes: Optional[str] = None
    delivery_address: Optional[Dict[str, Any]] = None
    pickup_address: Optional[Dict[str, Any]] = None
    collection_photo_url: Optional[str] = None


class SellerDeliveryUpdate(BaseModel):
    status: Literal["accepted", "out_for_pickup", "picked", "delivered", "returned"]


class SellerRefundRequest(BaseModel):
    refund_amount: float = Field(..., gt=0)


class OrderOrderStatusUpdate(BaseModel):
    order_status: Literal["upcoming", "ongoing", "completed", "late", "cancelled"]
