from .user import User
from .doctor import Doctor, AppointmentSlot, Specialty
from .appointment import Appointment, AppointmentStatus
from .queue import QueueEntry, QueueStatus

__all__ = [
    "User",
    "Doctor",
    "AppointmentSlot",
    "Specialty",
    "Appointment",
    "AppointmentStatus",
    "QueueEntry",
    "QueueStatus",
]
