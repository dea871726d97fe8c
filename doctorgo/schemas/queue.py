from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from ..models.queue import QueueStatus

class QueueJoin(BaseModel):
    doctor_id: Optional[int] = None

class QueueInvite(BaseModel):
    doctor_id: Optional[int] = None

class QueueEntryResponse(BaseModel):
    id: int
    patient_id: int
    patient_name: str
    doctor_id: int
    doctor_name: str
    joined_at: datetime
    status: QueueStatus
    position: int
    invited_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class InviteResponse(BaseModel):
    entry: Optional[QueueEntryResponse] = None
    message: Optional[str] = None
