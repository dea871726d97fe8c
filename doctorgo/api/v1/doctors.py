from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_admin_user
from ...models.doctor import Specialty
from ...models.user import User
from ...schemas.doctor import (
    DoctorCreate, DoctorResponse, DoctorDetailResponse, SlotResponse, SortOption
)
from ...services.doctor_directory import DoctorDirectory, DirectoryQuery
from ...services.slot_service import SlotService

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorResponse])
def list_doctors(
    search: Optional[str] = Query(None, description="Substring of name or specialty"),
    specialty: Optional[Specialty] = None,
    max_distance_km: Optional[float] = Query(None, gt=0),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    sort_by: Optional[SortOption] = None,
    db: Session = Depends(get_db)
):
    """Search the doctor directory."""
    criteria = DirectoryQuery(
        search=search,
        specialty=specialty,
        max_distance_km=max_distance_km,
        lat=lat,
        lng=lng,
        sort_by=sort_by
    )
    return DoctorDirectory(db).search(criteria)

@router.get("/{doctor_id}", response_model=DoctorDetailResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    """Doctor profile with today's and tomorrow's slots."""
    return DoctorDirectory(db).get_doctor(doctor_id)

@router.get("/{doctor_id}/slots", response_model=List[SlotResponse])
def get_doctor_slots(doctor_id: int, db: Session = Depends(get_db)):
    """Bookable slots for today and tomorrow."""
    return SlotService(db).generate_slots(doctor_id)

@router.post("", response_model=DoctorResponse, status_code=201)
def create_doctor(
    doctor_data: DoctorCreate,
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Provision a doctor profile (admin only)."""
    doctor = DoctorDirectory(db).create_doctor(doctor_data)
    return DoctorResponse.model_validate(doctor)
