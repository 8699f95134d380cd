# slotbook/models/professional.py
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from slotbook.models.base import Base


class Professional(Base):
    """Staff member whose agenda is booked. Row is also the booking lock target."""
    __tablename__ = "professionals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(200), nullable=False)

    # Buffer override: when custom_buffer is set, buffer_minutes replaces the business default
    custom_buffer = Column(Boolean, default=False, nullable=False)
    buffer_minutes = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    business = relationship("Business", back_populates="professionals")
    availability_rules = relationship("AvailabilityRule", back_populates="professional")

    def __repr__(self):
        return f"<Professional(id={self.id}, name={self.name}, business_id={self.business_id})>"
