"""Walk-in queue management.

Every mutation of a doctor's queue (join, invite, leave) runs as one unit:
read the doctor row under lock, reconcile ``queue_length`` with the true
count of waiting entries, change the entry, adjust the counter, commit. The
unit is serialized per doctor with an in-process lock and, on backends that
support it, ``SELECT ... FOR UPDATE`` on the doctor row.
"""
from sqlalchemy import func
from sqlalchemy.orm import Session
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional
import logging
import threading

from ..core.exceptions import (
    NotFoundError, MissingFieldError, InvalidStatusError, ForbiddenError
)
from ..models.doctor import Doctor
from ..models.queue import QueueEntry, QueueStatus
from ..models.user import User

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_doctor_locks: Dict[int, threading.Lock] = {}

def doctor_lock(doctor_id: int) -> threading.Lock:
    """Process-wide mutex guarding one doctor's queue."""
    with _registry_lock:
        lock = _doctor_locks.get(doctor_id)
        if lock is None:
            lock = _doctor_locks[doctor_id] = threading.Lock()
        return lock

class QueueService:
    def __init__(self, db: Session):
        self.db = db

    def join_queue(self, patient: User, doctor_id: Optional[int]) -> QueueEntry:
        """Append a waiting entry and bump the doctor's queue length."""
        if doctor_id is None:
            raise MissingFieldError("doctor_id")

        with self._locked_doctor(doctor_id) as doctor:
            entry = QueueEntry(
                patient_id=patient.id,
                doctor_id=doctor.id,
                joined_at=datetime.now(),
                status=QueueStatus.WAITING,
                position=doctor.queue_length + 1
            )
            self.db.add(entry)
            doctor.queue_length += 1

        self.db.refresh(entry)
        logger.info(
            f"Patient {patient.id} joined queue of doctor {doctor_id} "
            f"at position {entry.position}"
        )
        return entry

    def list_waiting(self, doctor_id: int) -> List[QueueEntry]:
        """Waiting entries in FIFO order; ``position`` plays no part."""
        if not self.db.query(Doctor).filter(Doctor.id == doctor_id).first():
            raise NotFoundError("Doctor not found")

        return self._waiting_query(doctor_id).all()

    def invite_next(self, doctor_id: Optional[int]) -> Optional[QueueEntry]:
        """Move the longest-waiting patient to ``invited``.

        Returns None when nobody is waiting.
        """
        if doctor_id is None:
            raise MissingFieldError("doctor_id")

        with self._locked_doctor(doctor_id) as doctor:
            entry = self._waiting_query(doctor_id).first()
            if entry is not None:
                entry.status = QueueStatus.INVITED
                entry.invited_at = datetime.now()
                doctor.queue_length = max(doctor.queue_length - 1, 0)

        if entry is None:
            logger.info(f"No patients waiting for doctor {doctor_id}")
            return None

        self.db.refresh(entry)
        logger.info(f"Doctor {doctor_id} invited patient {entry.patient_id} (entry {entry.id})")
        return entry

    def leave_queue(self, entry_id: int, principal: User) -> QueueEntry:
        """Cancel the principal's own waiting entry."""
        entry = self.db.query(QueueEntry).filter(QueueEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Queue entry not found")
        if entry.patient_id != principal.id:
            raise ForbiddenError("Unauthorized to modify this queue entry")

        doctor_id = entry.doctor_id
        with self._locked_doctor(doctor_id) as doctor:
            self.db.refresh(entry)
            if entry.status != QueueStatus.WAITING:
                raise InvalidStatusError(f"Queue entry is already {entry.status.value}")
            entry.status = QueueStatus.CANCELLED
            doctor.queue_length = max(doctor.queue_length - 1, 0)

        self.db.refresh(entry)
        logger.info(f"Patient {principal.id} left queue of doctor {doctor_id}")
        return entry

    def reconcile(self, doctor: Doctor) -> int:
        """Heal ``queue_length`` from the waiting entries; returns the true count."""
        waiting = self.db.query(func.count(QueueEntry.id)).filter(
            QueueEntry.doctor_id == doctor.id,
            QueueEntry.status == QueueStatus.WAITING
        ).scalar() or 0

        if doctor.queue_length != waiting:
            logger.warning(
                f"queue_length for doctor {doctor.id} was {doctor.queue_length} "
                f"but {waiting} entries are waiting; resetting"
            )
            doctor.queue_length = waiting
        return waiting

    def _waiting_query(self, doctor_id: int):
        return self.db.query(QueueEntry).filter(
            QueueEntry.doctor_id == doctor_id,
            QueueEntry.status == QueueStatus.WAITING
        ).order_by(QueueEntry.joined_at, QueueEntry.id)

    @contextmanager
    def _locked_doctor(self, doctor_id: int):
        """Yield the reconciled doctor row inside the per-doctor critical section.

        Commits on normal exit and rolls back if the body raises.
        """
        with doctor_lock(doctor_id):
            try:
                # End any transaction opened by earlier reads so the row is current
                self.db.commit()
                doctor = self.db.query(Doctor).filter(
                    Doctor.id == doctor_id
                ).with_for_update().first()
                if not doctor:
                    raise NotFoundError("Doctor not found")

                self.reconcile(doctor)
                yield doctor
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
