from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from datetime import datetime

from app.schemas.common import PageMeta


class ReviewCreate(BaseModel):
    product_id: int
    order_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewOut(BaseModel):
    id: int
    product_id: int
    buyer_id: int
    order_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewPage(PageMeta):
    items: List[ReviewOut]


class ProductReviewsOut(ReviewPage):
    average_rating: float
    review_count: int
    rating_distribution: Dict[int, int]


class SellerReviewStats(BaseModel):
    seller_id: int
    total_reviews: int
    average_rating: float
    rating_distribution: Dict[int, int]
    reviews_last_30_days: int


class CanReviewOut(BaseModel):
    can_review: bool
    reason: Optional[str] = None
