from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_current_user, rate_limit_check
from ...models.user import User
from ...schemas.appointment import (
    AppointmentCreate, AppointmentStatusUpdate, AppointmentResponse
)
from ...services.appointment_service import AppointmentService

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=201)
def create_appointment(
    appointment_data: AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    _: None = Depends(rate_limit_check)
):
    """Book a slot with a doctor."""
    service = AppointmentService(db)
    appointment = service.create_appointment(
        current_user,
        appointment_data.doctor_id,
        appointment_data.appointment_time
    )
    return AppointmentResponse.model_validate(appointment)

@router.get("", response_model=List[AppointmentResponse])
def list_appointments(
    doctor_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Own appointments, or a doctor's whole book when doctor_id is given."""
    appointments = AppointmentService(db).list_appointments(current_user, doctor_id)
    return [AppointmentResponse.model_validate(a) for a in appointments]

@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    appointment = AppointmentService(db).get_appointment(appointment_id, current_user)
    return AppointmentResponse.model_validate(appointment)

@router.patch("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    status_data: AppointmentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Change status; allowed for the appointment's patient or doctor."""
    appointment = AppointmentService(db).update_status(
        appointment_id, status_data.status, current_user
    )
    return AppointmentResponse.model_validate(appointment)
