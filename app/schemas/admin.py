from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional, Literal
from datetime import date, datetime

from app.schemas.common import PageMeta


class CommissionRuleCreate(BaseModel):
    category: Optional[Literal["costumes", "jewelry", "formal_wear", "accessories"]] = None
    percentage: float = Field(..., ge=0, le=100)
    is_active: bool = True


class CommissionRuleUpdate(BaseModel):
    percentage: Optional[float] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class CommissionRuleOut(BaseModel):
    id: int
    category: Optional[str] = None
    percentage: float
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WithdrawalRequest(BaseModel):
    amount: float = Field(..., gt=0)


class WithdrawalUpdate(BaseModel):
    payment_status: Literal["processing", "paid", "rejected"]
    reference: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    user_id: int
    amount: float
    payment_type: str
    payment_status: str
    reference: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentPage(PageMeta):
    items: List[PaymentOut]


class EarningsSummary(BaseModel):
    total_orders: int
    gross_rental_value: float
    total_commission: float
    net_seller_earnings: float
    total_security_deposits: float
    total_late_fees: float
    total_damage_fees: float


class SellerEarnings(EarningsSummary):
    seller_id: int
    total_withdrawn: float
    available_balance: float


class DepositSummary(BaseModel):
    held_count: int
    held_amount: float
    released_amount: float
    refunded_amount: float
    forfeited_amount: float


class DeliveryAssignmentOut(BaseModel):
    id: int
    order_id: int
    delivery_partner_id: int
    assignment_type: str
    status: str
    notes: Optional[str] = None
    assigned_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeliveryAssignmentPage(PageMeta):
    items: List[DeliveryAssignmentOut]


class AssignmentStatusUpdate(BaseModel):
    status: Literal["accepted", "in_progress", "completed", "cancelled"]


class AssignmentNotesUpdate(BaseModel):
    notes: str = Field(..., min_length=1)


class DashboardOverview(BaseModel):
    timeframe: str
    total_users: int
    new_users: int
    total_products: int
    total_orders: int
    period_orders: int
    period_revenue: float
    period_commission: float
    active_rentals: int
    pending_kyc: int
    user_growth_rate: float
    order_growth_rate: float
    revenue_growth_rate: float
    orders_by_status: Dict[str, int]


class DailyPoint(BaseModel):
    day: date
    orders: int
    revenue: float
    commission: float


class OrderAnalytics(BaseModel):
    timeframe: str
    daily: List[DailyPoint]
    orders_by_status: Dict[str, int]
    orders_by_delivery_status: Dict[str, int]
    average_order_value: float
    cancellation_rate: float


class CategoryRevenue(BaseModel):
    category: str
    orders: int
    revenue: float


class RevenueAnalytics(BaseModel):
    timeframe: str
    gross_revenue: float
    commission: float
    late_fees: float
    damage_fees: float
    discounts: float
    by_category: List[CategoryRevenue]


class TopProduct(BaseModel):
    product_id: int
    title: str
    category: str
    orders: int
    revenue: float


class ProductAnalytics(BaseModel):
    timeframe: str
    products_by_category: Dict[str, int]
    products_by_moderation_status: Dict[str, int]
    top_products: List[TopProduct]


class DispatchSummary(BaseModel):
    processed: int
    sent: int
    failed: int
    retrying: int
