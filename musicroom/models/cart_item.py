"""CartItem model - Slot a student intends to book at checkout"""
from sqlalchemy import Column, Float, DateTime, ForeignKey, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from musicroom.database import Base


class CartItem(Base):
    """Cart entry with the course price captured when it was added"""

    __tablename__ = "cart_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, nullable=False)
    slot_id = Column(
        Uuid,
        ForeignKey("time_slots.id", ondelete="CASCADE"),
        nullable=False,
    )
    price_at_add = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    slot = relationship("TimeSlot")

    __table_args__ = (
        UniqueConstraint("student_id", "slot_id", name="uq_cart_items_student_slot"),
        Index("idx_cart_items_student", "student_id"),
    )

    def __repr__(self):
        return f"<CartItem(id={self.id}, student={self.student_id}, slot={self.slot_id})>"
