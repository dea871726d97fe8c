"""
DoctorGo

A FastAPI-based clinic backend for finding doctors, booking appointment slots,
joining walk-in queues and getting symptom-based doctor recommendations.
"""

__version__ = "1.0.0"
