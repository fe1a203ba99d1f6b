"""Notification model - In-app messages about booking changes"""
from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON, Index, Uuid
from sqlalchemy.sql import func
import uuid

from musicroom.database import Base


class Notification(Base):
    """In-app notification for a student"""

    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(30), nullable=False)  # booking, waitlist, promotion, cancellation
    action_url = Column(String(500), nullable=True)
    payload = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "is_read"),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type})>"
