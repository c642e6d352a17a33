from sqlalchemy import Column, String, Boolean, Integer, ForeignKey, Text, DateTime, func
from sqlalchemy.orm import relationship
from app.db.session import Base

class Hall(Base):
    __tablename__ = "halls"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    images = relationship(
        "HallImage",
        back_populates="hall",
        cascade="all, delete-orphan",
        order_by="HallImage.display_order",
    )
    availability = relationship("HallAvailability", back_populates="hall")

class HallImage(Base):
    __tablename__ = "hall_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hall_id = Column(Integer, ForeignKey("halls.id"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    display_order = Column(Integer, default=0)

    hall = relationship("Hall", back_populates="images")
