from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Boolean, JSON, Index
from app.db.session import Base
from app.utils.timeutils import utcnow


class Notification(Base):
    """In-app notification shown to a user."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class NotificationOutbox(Base):
    """Notification intent written in the same transaction as the change that caused it."""

    __tablename__ = "notification_outbox"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL for admin fan-out
    event = Column(String(50), nullable=False)
    placeholders = Column(JSON, default=dict)
    status = Column(String(20), nullable=False, default="pending")  # pending | sent | failed
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("idx_outbox_pending", "status", "created_at"),)
