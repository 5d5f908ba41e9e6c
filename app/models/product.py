from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, DateTime, Boolean, JSON, Index
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.utils.timeutils import utcnow
import enum


class ProductCategory(str, enum.Enum):
    costumes = "costumes"
    jewelry = "jewelry"
    formal_wear = "formal_wear"
    accessories = "accessories"


class AvailabilityStatus(str, enum.Enum):
    available = "available"
    unavailable = "unavailable"
    booked = "booked"


class ModerationStatus(str, enum.Enum):
    visible = "visible"
    hidden = "hidden"
    rejected = "rejected"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(30), nullable=False, index=True)
    size = Column(String(20), nullable=True)
    image_keys = Column(JSON, default=list)  # object keys in the product image bucket
    rental_price_per_day = Column(Float, nullable=False)
    security_deposit_percentage = Column(Float, nullable=False, default=0.0)
    commission_percentage = Column(Float, nullable=True)
    try_on_available = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    availability_status = Column(String(20), default=AvailabilityStatus.available.value, nullable=False)
    moderation_status = Column(String(20), default=ModerationStatus.visible.value, nullable=False)
    moderation_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    seller = relationship("User", back_populates="products")

    __table_args__ = (
        Index("idx_products_listing", "availability_status", "moderation_status", "category"),
    )
