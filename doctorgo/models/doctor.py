from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Boolean, Float,
    UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class Specialty(str, enum.Enum):
    GENERAL_PRACTICE = "General Practice"
    CARDIOLOGY = "Cardiology"
    PEDIATRICS = "Pediatrics"
    DERMATOLOGY = "Dermatology"
    ORTHOPEDICS = "Orthopedics"

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Personal information
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    specialty = Column(SQLEnum(Specialty), nullable=False, index=True)

    # Professional information
    rating = Column(Float, nullable=False, default=0.0)
    cost = Column(Float, nullable=False, default=0.0)

    # Clinic location
    clinic_name = Column(String(200), nullable=True)
    clinic_address = Column(String(255), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    # Count of waiting queue entries, written only by QueueService
    queue_length = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor")
    appointments = relationship("Appointment", back_populates="doctor")
    slots = relationship("AppointmentSlot", back_populates="doctor")

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', specialty='{self.specialty}')>"

class AppointmentSlot(Base):
    """Bookable hour on a doctor's calendar."""
    __tablename__ = "appointment_slots"
    __table_args__ = (
        UniqueConstraint("doctor_id", "slot_time", name="uq_slot_doctor_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    slot_time = Column(DateTime, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    booked_at = Column(DateTime, nullable=True)

    doctor = relationship("Doctor", back_populates="slots")

    def __repr__(self):
        return f"<AppointmentSlot(doctor_id={self.doctor_id}, time='{self.slot_time}', booked={self.is_booked})>"
