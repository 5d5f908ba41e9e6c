from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime

from app.schemas.common import PageMeta

Category = Literal["costumes", "jewelry", "formal_wear", "accessories"]


class ProductOut(BaseModel):
    id: int
    seller_id: int
    title: str
    description: Optional[str] = None
    category: str
    size: Optional[str] = None
    image_urls: List[str] = []
    rental_price_per_day: float
    security_deposit_percentage: float
    commission_percentage: Optional[float] = None
    try_on_available: bool
    is_featured: bool
    availability_status: str
    moderation_status: str
    created_at: datetime


class ProductPage(PageMeta):
    items: List[ProductOut]


class ProductFields(BaseModel):
    """Validated form fields for create and update."""

    title: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = None
    category: Category
    size: Optional[str] = None
    rental_price_per_day: float = Field(..., gt=0)
    security_deposit_percentage: float = Field(0, ge=0, le=100)
    try_on_available: bool = False


class ProductModerationUpdate(BaseModel):
    moderation_status: Literal["visible", "hidden", "rejected"]
    notes: Optional[str] = None


class ProductAvailabilityUpdate(BaseModel):
    availability_status: Literal["available", "unavailable", "booked"]


class CommissionUpdate(BaseModel):
    commission_percentage: float


class FeaturedUpdate(BaseModel):
    is_featured: bool
