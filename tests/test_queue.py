import itertools
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from doctorgo.core.exceptions import (
    NotFoundError, MissingFieldError, InvalidStatusError, ForbiddenError
)
from doctorgo.models import Doctor, QueueEntry, QueueStatus, User
from doctorgo.services.queue_service import QueueService

from .conftest import make_doctor, make_user

def waiting_count(db, doctor_id):
    return db.query(QueueEntry).filter(
        QueueEntry.doctor_id == doctor_id,
        QueueEntry.status == QueueStatus.WAITING
    ).count()

def queue_length(db, doctor_id):
    db.expire_all()
    return db.query(Doctor).filter(Doctor.id == doctor_id).first().queue_length

@pytest.fixture
def doctor(db):
    return make_doctor(db)

@pytest.fixture
def patients(db):
    return [make_user(db, f"patient-{i}") for i in range(5)]

class TestJoinQueue:

    def test_join_creates_waiting_entry(self, db, doctor, patients):
        entry = QueueService(db).join_queue(patients[0], doctor.id)

        assert entry.status == QueueStatus.WAITING
        assert entry.patient_id == patients[0].id
        assert entry.doctor_id == doctor.id
        assert entry.position == 1
        assert entry.joined_at is not None
        assert entry.patient_name == "Patient 0"
        assert entry.doctor_name == "Grace Hopper"
        assert queue_length(db, doctor.id) == 1

    def test_positions_follow_queue_length(self, db, doctor, patients):
        service = QueueService(db)
        positions = [service.join_queue(p, doctor.id).position for p in patients[:3]]
        assert positions == [1, 2, 3]

    def test_unknown_doctor(self, db, patients):
        with pytest.raises(NotFoundError):
            QueueService(db).join_queue(patients[0], 999)

    def test_missing_doctor_id(self, db, patients):
        with pytest.raises(MissingFieldError):
            QueueService(db).join_queue(patients[0], None)

    def test_failed_join_leaves_state_unchanged(self, db, doctor, patients, monkeypatch):
        service = QueueService(db)
        service.join_queue(patients[0], doctor.id)

        def broken_reconcile(doc):
            doc.queue_length += 100
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(service, "reconcile", broken_reconcile)
        with pytest.raises(RuntimeError):
            service.join_queue(patients[1], doctor.id)

        assert queue_length(db, doctor.id) == 1
        assert waiting_count(db, doctor.id) == 1

def fail_final_commit(db, monkeypatch):
    """Make the commit that closes the next locked unit raise."""
    real_commit = db.commit
    calls = itertools.count(1)

    def commit():
        # Call 1 opens the unit, call 2 closes it
        if next(calls) == 2:
            db.flush()
            raise RuntimeError("connection lost")
        real_commit()

    monkeypatch.setattr(db, "commit", commit)

def entry_status(db, entry_id):
    db.expire_all()
    return db.query(QueueEntry).filter(QueueEntry.id == entry_id).first().status

class TestListWaiting:

    def test_fifo_order(self, db, doctor, patients):
        service = QueueService(db)
        joined = [service.join_queue(p, doctor.id).id for p in patients]

        waiting = service.list_waiting(doctor.id)
        assert [e.id for e in waiting] == joined

    def test_order_ignores_stored_position(self, db, doctor, patients):
        service = QueueService(db)
        joined = [service.join_queue(p, doctor.id).id for p in patients[:3]]

        for entry in db.query(QueueEntry).all():
            entry.position = 100 - entry.position
        db.commit()

        assert [e.id for e in service.list_waiting(doctor.id)] == joined

    def test_only_waiting_entries(self, db, doctor, patients):
        service = QueueService(db)
        for p in patients[:3]:
            service.join_queue(p, doctor.id)
        invited = service.invite_next(doctor.id)

        waiting = service.list_waiting(doctor.id)
        assert invited.id not in [e.id for e in waiting]
        assert len(waiting) == 2

    def test_positions_not_renumbered(self, db, doctor, patients):
        service = QueueService(db)
        for p in patients[:3]:
            service.join_queue(p, doctor.id)
        service.invite_next(doctor.id)

        assert [e.position for e in service.list_waiting(doctor.id)] == [2, 3]

    def test_unknown_doctor(self, db):
        with pytest.raises(NotFoundError):
            QueueService(db).list_waiting(999)

class TestInviteNext:

    def test_invites_oldest_waiting(self, db, doctor, patients):
        service = QueueService(db)
        first = service.join_queue(patients[0], doctor.id)
        service.join_queue(patients[1], doctor.id)

        invited = service.invite_next(doctor.id)

        assert invited.id == first.id
        assert invited.status == QueueStatus.INVITED
        assert invited.invited_at is not None
        assert queue_length(db, doctor.id) == 1

    def test_empty_queue_returns_none(self, db, doctor):
        assert QueueService(db).invite_next(doctor.id) is None
        assert queue_length(db, doctor.id) == 0

    def test_counter_never_negative(self, db, doctor, patients):
        service = QueueService(db)
        service.join_queue(patients[0], doctor.id)

        for _ in range(4):
            service.invite_next(doctor.id)

        assert queue_length(db, doctor.id) == 0

    def test_counter_matches_waiting_count_throughout(self, db, doctor, patients):
        service = QueueService(db)
        operations = ["join", "join", "invite", "join", "invite", "invite", "invite", "join"]
        joiners = iter(patients * 2)

        for op in operations:
            if op == "join":
                service.join_queue(next(joiners), doctor.id)
            else:
                service.invite_next(doctor.id)
            assert queue_length(db, doctor.id) == waiting_count(db, doctor.id)

    def test_failed_invite_leaves_state_unchanged(self, db, doctor, patients, monkeypatch):
        service = QueueService(db)
        first = service.join_queue(patients[0], doctor.id)
        service.join_queue(patients[1], doctor.id)
        first_id = first.id

        fail_final_commit(db, monkeypatch)
        with pytest.raises(RuntimeError):
            service.invite_next(doctor.id)
        monkeypatch.undo()

        assert entry_status(db, first_id) == QueueStatus.WAITING
        assert queue_length(db, doctor.id) == 2
        assert waiting_count(db, doctor.id) == 2

    def test_unknown_doctor(self, db):
        with pytest.raises(NotFoundError):
            QueueService(db).invite_next(999)

class TestLeaveQueue:

    def test_leave_cancels_and_decrements(self, db, doctor, patients):
        service = QueueService(db)
        entry = service.join_queue(patients[0], doctor.id)
        service.join_queue(patients[1], doctor.id)

        left = service.leave_queue(entry.id, patients[0])

        assert left.status == QueueStatus.CANCELLED
        assert queue_length(db, doctor.id) == 1
        assert [e.patient_id for e in service.list_waiting(doctor.id)] == [patients[1].id]

    def test_cannot_leave_for_someone_else(self, db, doctor, patients):
        service = QueueService(db)
        entry = service.join_queue(patients[0], doctor.id)

        with pytest.raises(ForbiddenError):
            service.leave_queue(entry.id, patients[1])

    def test_cannot_leave_after_invite(self, db, doctor, patients):
        service = QueueService(db)
        entry = service.join_queue(patients[0], doctor.id)
        service.invite_next(doctor.id)

        with pytest.raises(InvalidStatusError):
            service.leave_queue(entry.id, patients[0])
        assert queue_length(db, doctor.id) == 0

    def test_failed_leave_leaves_state_unchanged(self, db, doctor, patients, monkeypatch):
        service = QueueService(db)
        entry = service.join_queue(patients[0], doctor.id)
        entry_id = entry.id

        fail_final_commit(db, monkeypatch)
        with pytest.raises(RuntimeError):
            service.leave_queue(entry_id, patients[0])
        monkeypatch.undo()

        assert entry_status(db, entry_id) == QueueStatus.WAITING
        assert queue_length(db, doctor.id) == 1
        assert waiting_count(db, doctor.id) == 1

    def test_unknown_entry(self, db, patients):
        with pytest.raises(NotFoundError):
            QueueService(db).leave_queue(999, patients[0])

class TestCounterReconciliation:

    def test_join_heals_drifted_counter(self, db, doctor, patients):
        doctor.queue_length = 7
        db.commit()

        entry = QueueService(db).join_queue(patients[0], doctor.id)

        assert entry.position == 1
        assert queue_length(db, doctor.id) == 1

    def test_invite_heals_drifted_counter(self, db, doctor, patients):
        service = QueueService(db)
        service.join_queue(patients[0], doctor.id)
        service.join_queue(patients[1], doctor.id)
        doctor = db.query(Doctor).filter(Doctor.id == doctor.id).first()
        doctor.queue_length = 0
        db.commit()

        service.invite_next(doctor.id)

        assert queue_length(db, doctor.id) == 1

class TestQueueConcurrency:

    def test_concurrent_joins_keep_counter_consistent(self, db, doctor, session_factory):
        doctor_id = doctor.id
        patient_ids = [make_user(db, f"walk-in-{i}").id for i in range(12)]
        barrier = threading.Barrier(len(patient_ids))

        def join(patient_id):
            session = session_factory()
            try:
                patient = session.query(User).filter(User.id == patient_id).first()
                barrier.wait()
                return QueueService(session).join_queue(patient, doctor_id).position
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=len(patient_ids)) as pool:
            positions = list(pool.map(join, patient_ids))

        assert sorted(positions) == list(range(1, 13))
        assert queue_length(db, doctor_id) == 12
        assert waiting_count(db, doctor_id) == 12

    def test_concurrent_invites_never_share_an_entry(self, db, doctor, patients, session_factory):
        doctor_id = doctor.id
        QueueService(db).join_queue(patients[0], doctor_id)
        barrier = threading.Barrier(2)

        def invite(_):
            session = session_factory()
            try:
                barrier.wait()
                entry = QueueService(session).invite_next(doctor_id)
                return entry.id if entry else None
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(invite, range(2)))

        assert len([r for r in results if r is not None]) == 1
        assert results.count(None) == 1
        assert queue_length(db, doctor_id) == 0

    def test_concurrent_invites_each_get_distinct_patient(self, db, doctor, patients, session_factory):
        doctor_id = doctor.id
        service = QueueService(db)
        for p in patients:
            service.join_queue(p, doctor_id)
        barrier = threading.Barrier(8)

        def invite(_):
            session = session_factory()
            try:
                barrier.wait()
                entry = QueueService(session).invite_next(doctor_id)
                return entry.id if entry else None
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(invite, range(8)))

        invited = [r for r in results if r is not None]
        assert len(invited) == 5
        assert len(set(invited)) == 5
        assert results.count(None) == 3
        assert queue_length(db, doctor_id) == 0

    def test_mixed_joins_and_invites(self, db, doctor, session_factory):
        doctor_id = doctor.id
        patient_ids = [make_user(db, f"mixed-{i}").id for i in range(10)]

        def join(patient_id):
            session = session_factory()
            try:
                patient = session.query(User).filter(User.id == patient_id).first()
                QueueService(session).join_queue(patient, doctor_id)
            finally:
                session.close()

        def invite():
            session = session_factory()
            try:
                QueueService(session).invite_next(doctor_id)
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(join, pid) for pid in patient_ids]
            futures += [pool.submit(invite) for _ in range(6)]
            for future in futures:
                future.result()

        db.expire_all()
        assert queue_length(db, doctor_id) == waiting_count(db, doctor_id)
        invited = db.query(QueueEntry).filter(QueueEntry.status == QueueStatus.INVITED).count()
        assert invited + waiting_count(db, doctor_id) == 10
