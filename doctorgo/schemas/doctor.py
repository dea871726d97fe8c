from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from ..models.doctor import Specialty

class SortOption(str, Enum):
    RATING = "rating"
    COST_ASC = "cost_asc"
    COST_DESC = "cost_desc"
    QUEUE = "queue"
    DISTANCE = "distance"

class SlotResponse(BaseModel):
    id: int = Field(..., description="day_offset * 24 + hour, stable within one generation")
    time: datetime
    available: bool

class DoctorCreate(BaseModel):
    user_id: int
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    specialty: Specialty
    rating: float = Field(0.0, ge=0, le=5)
    cost: float = Field(0.0, ge=0)
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)

class DoctorResponse(BaseModel):
    id: int
    user_id: int
    name: str
    first_name: str
    last_name: str
    specialty: Specialty
    rating: float
    cost: float
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    queue_length: int
    distance_km: Optional[float] = None

    class Config:
        from_attributes = True

class DoctorDetailResponse(DoctorResponse):
    available_slots: List[SlotResponse] = []
