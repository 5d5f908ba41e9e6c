from sqlalchemy import Column, Integer, String, ForeignKey, Float, DateTime, Date, Boolean, Text, JSON, Index
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.utils.timeutils import utcnow
import enum


class OrderStatus(str, enum.Enum):
    upcoming = "upcoming"
    ongoing = "ongoing"
    completed = "completed"
    late = "late"
    cancelled = "cancelled"


class DeliveryStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    out_for_pickup = "out_for_pickup"
    picked = "picked"
    delivered = "delivered"
    returned = "returned"
    returned_damaged = "returned_damaged"
    cancelled = "cancelled"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"


class DamageClaimStatus(str, enum.Enum):
    none = "none"
    reported = "reported"
    approved = "approved"
    rejected = "rejected"


class DepositStatus(str, enum.Enum):
    held = "held"
    release = "release"
    partially_refunded = "partially_refunded"
    forfeited = "forfeited"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    version = Column(Integer, nullable=False, default=1)

    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    delivery_partner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id"), nullable=True)

    # Rental window
    rental_start_date = Column(Date, nullable=False)
    rental_end_date = Column(Date, nullable=False)
    rental_duration_days = Column(Integer, nullable=False)
    expected_return_date = Column(Date, nullable=False)
    actual_return_date = Column(Date, nullable=True)
    is_late_return = Column(Boolean, default=False, nullable=False)

    # Pricing
    total_rental_price = Column(Float, nullable=False)
    security_deposit = Column(Float, nullable=False, default=0.0)
    try_on_fee = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    commission_amount = Column(Float, nullable=False, default=0.0)
    late_fee = Column(Float, nullable=False, default=0.0)
    damage_fee = Column(Float, nullable=False, default=0.0)
    security_deposit_refund_amount = Column(Float, nullable=True)

    # Status fields
    order_status = Column(String(20), nullable=False, default=OrderStatus.upcoming.value, index=True)
    delivery_status = Column(String(20), nullable=False, default=DeliveryStatus.pending.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.pending.value)
    damage_claim_status = Column(String(20), nullable=False, default=DamageClaimStatus.none.value)
    security_deposit_status = Column(String(20), nullable=False, default=DepositStatus.held.value)

    # Damage claim
    damage_claim_description = Column(Text, nullable=True)
    damage_claim_photos = Column(JSON, default=list)
    damage_reviewed_by = Column(Integer, nullable=True)
    damage_reviewed_at = Column(DateTime, nullable=True)

    # Delivery
    pickup_address = Column(JSON, nullable=True)
    delivery_address = Column(JSON, nullable=True)
    delivery_assigned_at = Column(DateTime, nullable=True)
    delivery_assignment_type = Column(String(20), nullable=True)
    collection_photo_url = Column(String, nullable=True)

    # Audit
    admin_notes = Column(Text, nullable=True)
    last_admin_action = Column(String(50), nullable=True)
    last_admin_action_by = Column(Integer, nullable=True)
    last_admin_action_at = Column(DateTime, nullable=True)
    late_fee_applied_at = Column(DateTime, nullable=True)
    security_deposit_released_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    delivery_partner = relationship("User", foreign_keys=[delivery_partner_id])
    product = relationship("Product")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_orders_product_window", "product_id", "rental_start_date", "rental_end_date"),
        Index("idx_orders_seller_created", "seller_id", "created_at"),
    )

    @property
    def lifecycle_state(self) -> str:
        from app.services.order_lifecycle import lifecycle_state
        return lifecycle_state(self)


class DeliveryAssignment(Base):
    __tablename__ = "delivery_assignments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    delivery_partner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assignment_type = Column(String(20), nullable=False, default="delivery")  # delivery | return_pickup
    status = Column(String(20), nullable=False, default="assigned")  # assigned | accepted | in_progress | completed | cancelled
    notes = Column(Text, nullable=True)
    assigned_by = Column(Integer, nullable=True)
    assigned_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    order = relationship("Order")


class Payment(Base):
    """Seller payout requests."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    amount = Column(Float, nullable=False)
    payment_type = Column(String(20), nullable=False, default="withdrawal")
    payment_status = Column(String(20), nullable=False, default="pending")  # pending | processing | paid | rejected
    reference = Column(String(100), nullable=True)
    processed_by = Column(Integer, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User")


class CommissionRule(Base):
    __tablename__ = "commission_rules"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(30), nullable=True, unique=True)  # NULL is the default rule
    percentage = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
