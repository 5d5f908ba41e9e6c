from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.utils.timeutils import utcnow


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    buyer = relationship("User")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_review_order"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating"),
    )
