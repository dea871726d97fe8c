from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from ..models.appointment import AppointmentStatus

class AppointmentCreate(BaseModel):
    # Optional so the service can report MissingField instead of a 422
    doctor_id: Optional[int] = None
    appointment_time: Optional[datetime] = None

class AppointmentStatusUpdate(BaseModel):
    # Plain string so unknown values surface as InvalidStatus
    status: Optional[str] = None

class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    patient_name: str
    doctor_id: int
    doctor_name: str
    appointment_time: datetime
    status: AppointmentStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
