from sqlalchemy import Column, String, Integer, ForeignKey, Date, DateTime, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship
from app.db.session import Base

class HallAvailability(Base):
    """One row per (hall, date) that has ever been held or booked.

    A missing row means the date is available. Rows are never deleted;
    release and cancellation write status back to "available".
    """
    __tablename__ = "hall_availability"
    __table_args__ = (
        UniqueConstraint("hall_id", "date", name="uq_hall_availability_hall_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    hall_id = Column(Integer, ForeignKey("halls.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="available", index=True) # available, on_hold, booked
    reason = Column(Text, nullable=True)
    category = Column(String(20), nullable=True) # wedding, upanayana, reception, others
    holder = Column(String(100), nullable=True)
    hold_expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    hall = relationship("Hall", back_populates="availability")

class HallAvailabilityEvent(Base):
    __tablename__ = "hall_availability_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hall_id = Column(Integer, ForeignKey("halls.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False)
    reason = Column(Text, nullable=True)
    holder = Column(String(100), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
