from pydantic import BaseModel, model_validator
from typing import List, Optional
from datetime import date, datetime

from app.schemas.common import PageMeta
from app.schemas.product import ProductOut


class CartAdd(BaseModel):
    product_id: int
    rental_start_date: date
    rental_end_date: date
    try_on_requested: bool = False

    @model_validator(mode="after")
    def check_dates(self):
        if self.rental_end_date <= self.rental_start_date:
            raise ValueError("rental_end_date must be after rental_start_date")
        return self


class CartUpdate(BaseModel):
    rental_start_date: Optional[date] = None
    rental_end_date: Optional[date] = None
    try_on_requested: Optional[bool] = None


class CartItemOut(BaseModel):
    id: int
    product: ProductOut
    rental_start_date: date
    rental_end_date: date
    rental_days: int
    try_on_requested: bool
    rental_price: float
    security_deposit: float
    try_on_fee: float
    item_total: float
    expires_at: datetime


class CartSummary(BaseModel):
    item_count: int
    total_rental_price: float
    total_security_deposit: float
    total_try_on_fee: float
    grand_total: float


class CartOut(BaseModel):
    items: List[CartItemOut]
    summary: CartSummary


class AvailabilityOut(BaseModel):
    product_id: int
    available: bool
    reason: Optional[str] = None


class InCartStatus(BaseModel):
    in_cart: bool
    cart_item_id: Optional[int] = None


class WishlistAdd(BaseModel):
    product_id: int


class WishlistItemOut(BaseModel):
    id: int
    product: ProductOut
    created_at: datetime


class WishlistPage(PageMeta):
    items: List[WishlistItemOut]


class WishlistStatus(BaseModel):
    in_wishlist: bool
