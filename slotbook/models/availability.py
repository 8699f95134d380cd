from sqlalchemy import Column, Integer, Boolean, Time, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from slotbook.models.base import Base
import uuid


class AvailabilityRule(Base):
    """Weekly working-hours template of a professional, one row per weekday"""
    __tablename__ = "availability_rules"
    __table_args__ = (
        UniqueConstraint("professional_id", "day_of_week", name="uq_availability_rule_day"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id = Column(
        Uuid,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    day_of_week = Column(Integer, nullable=False)  # 0=Monday, 6=Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)  # 00:00 (or <= start_time) means midnight
    break_start = Column(Time, nullable=True)
    break_end = Column(Time, nullable=True)

    is_active = Column(Boolean, default=True)

    professional = relationship("Professional", back_populates="availability_rules")

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None
