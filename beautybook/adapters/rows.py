"""
Conversion between backend table rows and domain models.

Rows use the column names of the hosted tables (camelCase), e.g.
``professionalId`` or ``clientWhatsapp``.
"""

from typing import Any, Dict

import pendulum
from pendulum import DateTime

from ..domain.models import (
    Appointment,
    AppointmentDraft,
    Professional,
    Service,
    WeeklyAvailability,
)


PROFESSIONAL_COLUMNS = "id,created_at,user_id,name,specialty,bio,photoUrl,services,availability,bookingSlotInterval"
SERVICE_COLUMNS = "id,created_at,name,description,duration,price,icon"
APPOINTMENT_COLUMNS = "id,created_at,professionalId,serviceId,clientName,clientWhatsapp,startTime,endTime"


def parse_datetime(value: str, timezone: str) -> DateTime:
    """
    Parse an ISO 8601 string to a pendulum DateTime in the given timezone.

    Raises:
        ValueError: If the value is not a datetime
    """
    parsed = pendulum.parse(value, tz=timezone)
    if isinstance(parsed, DateTime):
        return parsed.in_timezone(timezone)
    raise ValueError(f"Could not parse datetime: {value}")


def professional_from_row(row: Dict[str, Any]) -> Professional:
    return Professional(
        id=row["id"],
        name=row.get("name", ""),
        availability=WeeklyAvailability.from_mapping(row.get("availability")),
        slot_interval_minutes=row.get("bookingSlotInterval"),
        service_ids=list(row.get("services") or []),
        user_id=row.get("user_id"),
        specialty=row.get("specialty") or "",
        bio=row.get("bio") or "",
        photo_url=row.get("photoUrl") or "",
    )


def service_from_row(row: Dict[str, Any]) -> Service:
    return Service(
        id=row["id"],
        name=row["name"],
        duration_minutes=int(row["duration"]),
        price=float(row.get("price") or 0),
        description=row.get("description") or "",
        icon=row.get("icon") or "",
    )


def appointment_from_row(row: Dict[str, Any], timezone: str) -> Appointment:
    created_at = row.get("created_at")
    return Appointment(
        id=row["id"],
        professional_id=row["professionalId"],
        service_id=row["serviceId"],
        client_name=row["clientName"],
        client_contact=row["clientWhatsapp"],
        start_time=parse_datetime(row["startTime"], timezone),
        end_time=parse_datetime(row["endTime"], timezone),
        created_at=parse_datetime(created_at, timezone) if created_at else None,
    )


def draft_to_row(draft: AppointmentDraft) -> Dict[str, Any]:
    return {
        "professionalId": draft.professional_id,
        "serviceId": draft.service_id,
        "clientName": draft.client_name,
        "clientWhatsapp": draft.client_contact,
        "startTime": draft.start_time.in_timezone("UTC").to_iso8601_string(),
        "endTime": draft.end_time.in_timezone("UTC").to_iso8601_string(),
    }
