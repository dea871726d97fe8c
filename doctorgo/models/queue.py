from sqlalchemy import Column, Integer, ForeignKey, DateTime, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class QueueStatus(str, enum.Enum):
    WAITING = "waiting"
    INVITED = "invited"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class QueueEntry(Base):
    """Walk-in queue entry.

    ``position`` is recorded at join time and never renumbered; queue order is
    always ``joined_at`` ascending among waiting entries.
    """
    __tablename__ = "queue_entries"
    __table_args__ = (
        Index("ix_queue_doctor_status_joined", "doctor_id", "status", "joined_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)

    joined_at = Column(DateTime, nullable=False)
    status = Column(SQLEnum(QueueStatus), nullable=False, default=QueueStatus.WAITING)
    position = Column(Integer, nullable=False)
    invited_at = Column(DateTime, nullable=True)

    patient = relationship("User")
    doctor = relationship("Doctor")

    @property
    def patient_name(self) -> str:
        return self.patient.display_name if self.patient else ""

    @property
    def doctor_name(self) -> str:
        return self.doctor.name if self.doctor else ""

    def __repr__(self):
        return f"<QueueEntry(id={self.id}, doctor_id={self.doctor_id}, status='{self.status}')>"
