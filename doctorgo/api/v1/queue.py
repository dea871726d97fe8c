from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.exceptions import MissingFieldError, ForbiddenError
from ...core.security import UserRole
from ...api.deps import get_current_user, get_clinic_staff_user, rate_limit_check
from ...models.doctor import Doctor
from ...models.user import User
from ...schemas.queue import QueueJoin, QueueInvite, QueueEntryResponse, InviteResponse
from ...services.queue_service import QueueService

router = APIRouter(prefix="/queue", tags=["Queue"])

@router.post("", response_model=QueueEntryResponse, status_code=201)
def join_queue(
    join_data: QueueJoin,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    _: None = Depends(rate_limit_check)
):
    """Join a doctor's walk-in queue."""
    entry = QueueService(db).join_queue(current_user, join_data.doctor_id)
    return QueueEntryResponse.model_validate(entry)

@router.get("", response_model=List[QueueEntryResponse])
def get_queue(doctor_id: Optional[int] = None, db: Session = Depends(get_db)):
    """Waiting patients for a doctor, first come first served."""
    if doctor_id is None:
        raise MissingFieldError("doctor_id")
    entries = QueueService(db).list_waiting(doctor_id)
    return [QueueEntryResponse.model_validate(e) for e in entries]

@router.post("/invite-next", response_model=InviteResponse)
def invite_next_patient(
    invite_data: QueueInvite,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_clinic_staff_user)
):
    """Call the next waiting patient (doctor or clinic staff)."""
    if invite_data.doctor_id is None:
        raise MissingFieldError("doctor_id")

    if current_user.role == UserRole.DOCTOR:
        doctor = db.query(Doctor).filter(Doctor.id == invite_data.doctor_id).first()
        if doctor and doctor.user_id != current_user.id:
            raise ForbiddenError("Doctors may only call patients from their own queue")

    entry = QueueService(db).invite_next(invite_data.doctor_id)
    if entry is None:
        return InviteResponse(entry=None, message="No patients in queue")
    return InviteResponse(entry=QueueEntryResponse.model_validate(entry))

@router.post("/{entry_id}/leave", response_model=QueueEntryResponse)
def leave_queue(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Leave a queue the caller is waiting in."""
    entry = QueueService(db).leave_queue(entry_id, current_user)
    return QueueEntryResponse.model_validate(entry)
