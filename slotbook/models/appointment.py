from sqlalchemy import Column, String, Integer, Text, DateTime, Numeric, ForeignKey, UniqueConstraint, Index, Uuid
from sqlalchemy.sql import func
import enum
import uuid
from slotbook.models.base import Base, UTCDateTime


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"        # awaiting payment
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"    # logical delete, row is kept for reporting
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class BookingSource(str, enum.Enum):
    OPERATOR = "operator"
    PUBLIC_LINK = "public_link"
    BOT = "bot"


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("business_id", "idempotency_key", name="uq_appointments_idempotency_key"),
        Index("ix_appointments_professional_start", "professional_id", "start_datetime"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # References
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=False, index=True)
    professional_id = Column(Uuid, ForeignKey("professionals.id"), nullable=False)
    service_id = Column(Uuid, ForeignKey("services.id"), nullable=False)

    # Customer info
    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)
    customer_email = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # Appointment details; duration and price are snapshots of the service at booking time
    start_datetime = Column(UTCDateTime, nullable=False)
    end_datetime = Column(UTCDateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=True)

    # Status tracking
    status = Column(String(20), default=AppointmentStatus.CONFIRMED.value, nullable=False)
    source = Column(String(20), default=BookingSource.OPERATOR.value, nullable=False)
    idempotency_key = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, professional_id={self.professional_id}, "
            f"start={self.start_datetime}, status={self.status})>"
        )
