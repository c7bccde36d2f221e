"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import (
    AppointmentStoreProtocol,
    BookingService,
    NotifierProtocol,
    PermissionState,
)

__all__ = ["AppointmentStoreProtocol", "BookingService", "NotifierProtocol", "PermissionState"]
