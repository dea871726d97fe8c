from pydantic import BaseModel, Field

from ..models.doctor import Specialty

class Recommendation(BaseModel):
    doctor_id: int
    doctor_name: str
    specialty: Specialty
    match_score: int = Field(..., ge=0, le=100)
    reason: str
