# slotbook/models/business.py
"""
Business Model
Tenant root: owns professionals, services, time blocks and appointments.
"""
from sqlalchemy import Column, String, Boolean, DateTime, JSON, Time, Integer, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from slotbook.models.base import Base


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)

    # IANA zone name; every local date/time of this business is read in it
    timezone = Column(String(50), default="UTC", nullable=False)

    # Validated into schemas.booking.BookingSettings at the repository boundary
    booking_settings = Column(JSON, default=dict)

    professionals = relationship("Professional", back_populates="business")
    services = relationship("Service", back_populates="business")
    business_hours = relationship("BusinessHours", back_populates="business")

    # Technical fields
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<Business(id={self.id}, name={self.name})>"


class BusinessHours(Base):
    __tablename__ = "business_hours"
    __table_args__ = (
        UniqueConstraint("business_id", "day_of_week", name="uq_business_hours_day"),
    )

    id = Column(Integer, primary_key=True)
    business_id = Column(Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Monday, 6=Sunday
    open_time = Column(Time, nullable=True)
    close_time = Column(Time, nullable=True)  # 00:00 means midnight
    is_closed = Column(Boolean, default=False)

    business = relationship("Business", back_populates="business_hours")

    def __repr__(self):
        return f"<BusinessHours(business_id={self.business_id}, day={self.day_of_week})>"
