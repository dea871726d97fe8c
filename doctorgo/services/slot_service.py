from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from ..core.config import settings
from ..core.exceptions import NotFoundError, SlotUnavailableError
from ..models.doctor import Doctor, AppointmentSlot
from ..schemas.doctor import SlotResponse

logger = logging.getLogger(__name__)

def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value

def current_hour() -> datetime:
    return datetime.now().replace(minute=0, second=0, microsecond=0)

def slot_times(reference_time: datetime) -> List[tuple]:
    """(day_offset, hour, slot_time) for every slot in the rolling window."""
    day = to_local_naive(reference_time).replace(hour=0, minute=0, second=0, microsecond=0)
    times = []
    for offset in range(settings.SLOT_WINDOW_DAYS):
        for hour in range(settings.SLOT_START_HOUR, settings.SLOT_END_HOUR + 1):
            times.append((offset, hour, day + timedelta(days=offset, hours=hour)))
    return times

def slot_id(day_offset: int, hour: int) -> int:
    return day_offset * 24 + hour

def normalize_slot_time(value: datetime) -> datetime:
    """Convert to naive local time and validate it sits on the clinic grid."""
    value = to_local_naive(value)

    on_the_hour = value.minute == 0 and value.second == 0 and value.microsecond == 0
    in_hours = settings.SLOT_START_HOUR <= value.hour <= settings.SLOT_END_HOUR
    if not (on_the_hour and in_hours):
        raise SlotUnavailableError(
            f"{value.isoformat()} is not a bookable slot; slots start on the hour "
            f"between {settings.SLOT_START_HOUR}:00 and {settings.SLOT_END_HOUR}:00"
        )
    return value

def check_bookable(slot_time: datetime, now: Optional[datetime] = None) -> datetime:
    """Validate a slot time against the grid and the current rolling window."""
    slot_time = normalize_slot_time(slot_time)

    now = to_local_naive(now or datetime.now())
    earliest = now.replace(minute=0, second=0, microsecond=0)
    window_end = now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(
        days=settings.SLOT_WINDOW_DAYS
    )
    if slot_time < earliest:
        raise SlotUnavailableError(f"{slot_time.isoformat()} is in the past")
    if slot_time >= window_end:
        raise SlotUnavailableError(
            f"{slot_time.isoformat()} is outside the {settings.SLOT_WINDOW_DAYS}-day booking window"
        )
    return slot_time

class SlotService:
    """Persisted per-doctor slot calendar.

    Rows are seeded idempotently as available and only ``claim`` ever books
    one, so every read sees the same availability as the booking check.
    """

    def __init__(self, db: Session):
        self.db = db

    def generate_slots(
        self,
        doctor_id: int,
        reference_time: Optional[datetime] = None
    ) -> List[SlotResponse]:
        """Return the doctor's slots for the reference day and the next one."""
        if not self.db.query(Doctor).filter(Doctor.id == doctor_id).first():
            raise NotFoundError("Doctor not found")

        window = slot_times(reference_time or datetime.now())
        rows = self._ensure_slots(doctor_id, [t for _, _, t in window])
        earliest = current_hour()

        return [
            SlotResponse(
                id=slot_id(offset, hour),
                time=time,
                available=not rows[time].is_booked and time >= earliest,
            )
            for offset, hour, time in window
        ]

    def claim(self, doctor_id: int, slot_time: datetime) -> AppointmentSlot:
        """Book one slot.

        A missing calendar row is seeded (and committed) first, exactly like
        generation does, so racing a concurrent seed is harmless. The flip
        itself is a conditional UPDATE left in the caller's transaction: of
        two concurrent claims for the same (doctor, time) exactly one sees a
        changed row. The caller commits or rolls back.
        """
        slot_time = check_bookable(slot_time)

        slot = self._find(doctor_id, slot_time)
        if slot is None:
            slot = self._ensure_slots(doctor_id, [slot_time])[slot_time]

        result = self.db.execute(
            update(AppointmentSlot)
            .where(
                AppointmentSlot.id == slot.id,
                AppointmentSlot.is_booked.is_(False),
            )
            .values(is_booked=True, booked_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(f"Slot {slot_time.isoformat()} for doctor {doctor_id} already booked")
            raise SlotUnavailableError()

        self.db.refresh(slot)
        logger.info(f"Claimed slot {slot_time.isoformat()} for doctor {doctor_id}")
        return slot

    def _find(self, doctor_id: int, slot_time: datetime) -> Optional[AppointmentSlot]:
        return self.db.query(AppointmentSlot).filter(
            AppointmentSlot.doctor_id == doctor_id,
            AppointmentSlot.slot_time == slot_time
        ).first()

    def _ensure_slots(self, doctor_id: int, times: List[datetime]) -> dict:
        existing = {
            slot.slot_time: slot
            for slot in self.db.query(AppointmentSlot).filter(
                AppointmentSlot.doctor_id == doctor_id,
                AppointmentSlot.slot_time.in_(times)
            ).all()
        }
        missing = [t for t in times if t not in existing]
        if not missing:
            return existing

        for time in missing:
            self.db.add(AppointmentSlot(doctor_id=doctor_id, slot_time=time, is_booked=False))
        try:
            self.db.commit()
        except IntegrityError:
            # Another request seeded some of these rows first
            self.db.rollback()
            return self._ensure_slots(doctor_id, times)

        logger.info(f"Seeded {len(missing)} slot(s) for doctor {doctor_id}")
        return self._ensure_slots(doctor_id, times)
