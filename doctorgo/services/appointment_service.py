from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional
import logging

from ..core.exceptions import (
    NotFoundError, MissingFieldError, InvalidStatusError, ForbiddenError
)
from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import Doctor
from ..models.user import User
from .slot_service import SlotService

logger = logging.getLogger(__name__)

STAFF_ROLES = (UserRole.SECRETARY, UserRole.ADMIN)

class AppointmentService:
    def __init__(self, db: Session):
        self.db = db
        self.slots = SlotService(db)

    def create_appointment(
        self,
        patient: User,
        doctor_id: Optional[int],
        appointment_time: Optional[datetime]
    ) -> Appointment:
        """Book a slot and record a scheduled appointment in one transaction."""
        if doctor_id is None:
            raise MissingFieldError("doctor_id")
        if appointment_time is None:
            raise MissingFieldError("appointment_time")

        doctor = self._get_doctor(doctor_id)

        try:
            slot = self.slots.claim(doctor.id, appointment_time)
            appointment = Appointment(
                patient_id=patient.id,
                doctor_id=doctor.id,
                appointment_time=slot.slot_time,
                status=AppointmentStatus.SCHEDULED
            )
            self.db.add(appointment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(
            f"Appointment {appointment.id} scheduled for patient {patient.id} "
            f"with doctor {doctor.id} at {appointment.appointment_time.isoformat()}"
        )
        return appointment

    def list_appointments(
        self,
        principal: User,
        doctor_id: Optional[int] = None
    ) -> List[Appointment]:
        """Patients see their own; a doctor filter returns the doctor's whole book."""
        query = self.db.query(Appointment)

        if doctor_id is not None:
            doctor = self._get_doctor(doctor_id)
            if doctor.user_id != principal.id and principal.role not in STAFF_ROLES:
                raise ForbiddenError("Not allowed to view this doctor's appointments")
            query = query.filter(Appointment.doctor_id == doctor.id)
        else:
            query = query.filter(Appointment.patient_id == principal.id)

        return query.order_by(Appointment.appointment_time, Appointment.id).all()

    def get_appointment(self, appointment_id: int, principal: User) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        self._check_owner(appointment, principal)
        return appointment

    def update_status(
        self,
        appointment_id: int,
        new_status: Optional[str],
        principal: User
    ) -> Appointment:
        """Overwrite the status if the caller is the patient or the doctor.

        No transition table is enforced; any valid status may replace any other.
        """
        appointment = self._get_appointment(appointment_id)

        try:
            status = AppointmentStatus(new_status)
        except ValueError:
            raise InvalidStatusError(
                f"Invalid status value; expected one of {[s.value for s in AppointmentStatus]}"
            )

        self._check_owner(appointment, principal)

        previous = appointment.status
        appointment.status = status
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(
            f"Appointment {appointment.id} status {previous.value} -> {status.value} "
            f"by user {principal.id}"
        )
        return appointment

    def _check_owner(self, appointment: Appointment, principal: User):
        is_patient = appointment.patient_id == principal.id
        is_doctor = appointment.doctor is not None and appointment.doctor.user_id == principal.id
        if not is_patient and not is_doctor:
            raise ForbiddenError("Unauthorized to modify this appointment")

    def _get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")
        return doctor

    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).first()
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment
