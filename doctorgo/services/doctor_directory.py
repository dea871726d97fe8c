from sqlalchemy.orm import Session
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
import logging
import math

from ..core.exceptions import NotFoundError, MissingFieldError
from ..models.doctor import Doctor, Specialty
from ..models.user import User
from ..schemas.doctor import (
    DoctorCreate, DoctorResponse, DoctorDetailResponse, SortOption
)
from .slot_service import SlotService

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))

@dataclass
class DirectoryQuery:
    search: Optional[str] = None
    specialty: Optional[Specialty] = None
    max_distance_km: Optional[float] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    sort_by: Optional[SortOption] = None

    @property
    def has_origin(self) -> bool:
        return self.lat is not None and self.lng is not None

def search_doctors(
    doctors: Iterable[Doctor],
    criteria: DirectoryQuery
) -> List[Tuple[Doctor, Optional[float]]]:
    """Filter and sort doctors; pairs each doctor with its distance when known."""
    needs_origin = criteria.max_distance_km is not None or criteria.sort_by == SortOption.DISTANCE
    if needs_origin and not criteria.has_origin:
        raise MissingFieldError("lat and lng")

    term = (criteria.search or "").strip().lower()
    results = []
    for doctor in doctors:
        if term and term not in doctor.name.lower() and term not in Specialty(doctor.specialty).value.lower():
            continue
        if criteria.specialty and doctor.specialty != criteria.specialty:
            continue

        distance = None
        if criteria.has_origin and doctor.lat is not None and doctor.lng is not None:
            distance = haversine_km(criteria.lat, criteria.lng, doctor.lat, doctor.lng)
        if criteria.max_distance_km is not None and (distance is None or distance > criteria.max_distance_km):
            continue

        results.append((doctor, distance))

    if criteria.sort_by == SortOption.RATING:
        results.sort(key=lambda pair: pair[0].rating, reverse=True)
    elif criteria.sort_by == SortOption.COST_ASC:
        results.sort(key=lambda pair: pair[0].cost)
    elif criteria.sort_by == SortOption.COST_DESC:
        results.sort(key=lambda pair: pair[0].cost, reverse=True)
    elif criteria.sort_by == SortOption.QUEUE:
        results.sort(key=lambda pair: pair[0].queue_length)
    elif criteria.sort_by == SortOption.DISTANCE:
        # Doctors without coordinates go last
        results.sort(key=lambda pair: (pair[1] is None, pair[1] or 0.0))

    return results

class DoctorDirectory:
    def __init__(self, db: Session):
        self.db = db

    def search(self, criteria: DirectoryQuery) -> List[DoctorResponse]:
        doctors = self.db.query(Doctor).order_by(Doctor.id).all()
        return [
            DoctorResponse.model_validate(doctor).model_copy(update={"distance_km": distance})
            for doctor, distance in search_doctors(doctors, criteria)
        ]

    def get_doctor(
        self,
        doctor_id: int,
        reference_time: Optional[datetime] = None
    ) -> DoctorDetailResponse:
        """Doctor profile with the generated slot calendar."""
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        slots = SlotService(self.db).generate_slots(doctor.id, reference_time)
        return DoctorDetailResponse(
            **DoctorResponse.model_validate(doctor).model_dump(),
            available_slots=slots
        )

    def create_doctor(self, data: DoctorCreate) -> Doctor:
        """Provision a doctor profile for an existing user."""
        user = self.db.query(User).filter(User.id == data.user_id).first()
        if not user:
            raise NotFoundError("User not found")

        doctor = Doctor(**data.model_dump(), queue_length=0)
        self.db.add(doctor)
        self.db.commit()
        self.db.refresh(doctor)

        logger.info(f"Provisioned doctor {doctor.id} ({doctor.specialty.value}) for user {user.id}")
        return doctor
