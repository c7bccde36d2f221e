"""
Domain layer - Pure business logic without external dependencies.
"""

from .booking import BookingGate, google_calendar_link
from .models import (
    Appointment,
    AppointmentDraft,
    CandidateSlot,
    Professional,
    Service,
    TimeRange,
    WeeklyAvailability,
)
from .slot_calculator import SlotCalculator

__all__ = [
    "Appointment",
    "AppointmentDraft",
    "BookingGate",
    "CandidateSlot",
    "Professional",
    "Service",
    "SlotCalculator",
    "TimeRange",
    "WeeklyAvailability",
    "google_calendar_link",
]
