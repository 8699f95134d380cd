from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
import uuid
from slotbook.models.base import Base, UTCDateTime


class TimeBlock(Base):
    """Administrative blackout (holiday, maintenance, lunch). No professional = whole business."""
    __tablename__ = "time_blocks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    professional_id = Column(Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=True)

    start_datetime = Column(UTCDateTime, nullable=False)
    end_datetime = Column(UTCDateTime, nullable=False)
    reason = Column(String(200), nullable=True)  # "Holiday", "Maintenance", etc.

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return (
            f"<TimeBlock(business_id={self.business_id}, professional_id={self.professional_id}, "
            f"start={self.start_datetime}, end={self.end_datetime})>"
        )
