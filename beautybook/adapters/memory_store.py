"""
In-memory data store for running without the hosted backend.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pendulum

from ..domain.exceptions import StoreError
from ..domain.models import (
    Appointment,
    AppointmentDraft,
    Professional,
    Service,
    WeeklyAvailability,
)
from .rows import appointment_from_row, professional_from_row, service_from_row


logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_data.json"


class MemoryStore:
    """
    Store that keeps professionals, services and appointments in memory.

    It loads realistic sample data from mock_data.json (or any file of the
    same shape) so the CLI and tests can run without a backend.

    With ``reject_overlaps`` the store refuses to create an appointment that
    overlaps an existing one of the same professional, the write-time
    conflict constraint that the hosted tables lack.
    """

    def __init__(
        self,
        professionals: Sequence[Professional] = (),
        services: Sequence[Service] = (),
        appointments: Sequence[Appointment] = (),
        reject_overlaps: bool = True,
        timezone: str = "America/Sao_Paulo",
    ):
        self.timezone = timezone
        self.reject_overlaps = reject_overlaps
        self._professionals: Dict[int, Professional] = {p.id: p for p in professionals}
        self._services: Dict[int, Service] = {s.id: s for s in services}
        self._appointments: List[Appointment] = list(appointments)
        self.create_calls = 0

    @classmethod
    def from_json(
        cls,
        data_file: Path | None = None,
        timezone: str = "America/Sao_Paulo",
        reject_overlaps: bool = True,
    ) -> "MemoryStore":
        """
        Load a store from a JSON file with "professionals", "services" and
        "appointments" lists in backend row format.

        Raises:
            StoreError: If the file is missing or malformed
        """
        path = data_file or DEFAULT_DATA_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                data: Dict[str, Any] = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not load mock data from {path}: {exc}") from exc

        try:
            return cls(
                professionals=[professional_from_row(row) for row in data.get("professionals", [])],
                services=[service_from_row(row) for row in data.get("services", [])],
                appointments=[
                    appointment_from_row(row, timezone) for row in data.get("appointments", [])
                ],
                reject_overlaps=reject_overlaps,
                timezone=timezone,
            )
        except (KeyError, ValueError) as exc:
            raise StoreError(f"Invalid mock data in {path}: {exc}") from exc

    async def list_professionals(self) -> List[Professional]:
        return list(self._professionals.values())

    async def get_professional(self, professional_id: int) -> Professional | None:
        return self._professionals.get(professional_id)

    async def find_professional_by_user(self, user_id: str) -> Professional | None:
        for professional in self._professionals.values():
            if professional.user_id == user_id:
                return professional
        return None

    async def list_services(self, ids: Sequence[int] | None = None) -> List[Service]:
        if ids is None:
            return list(self._services.values())
        return [self._services[i] for i in ids if i in self._services]

    async def fetch_appointments(self, professional_id: int) -> List[Appointment]:
        return [a for a in self._appointments if a.professional_id == professional_id]

    async def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        self.create_calls += 1

        if self.reject_overlaps:
            for existing in self._appointments:
                if existing.professional_id == draft.professional_id and existing.overlaps(
                    draft.start_time, draft.end_time
                ):
                    raise StoreError(
                        f"Appointment {existing.id} already occupies "
                        f"{existing.start_time.format('DD.MM.YYYY HH:mm')}"
                    )

        next_id = max((a.id for a in self._appointments), default=0) + 1
        appointment = Appointment.from_draft(draft, id=next_id, created_at=pendulum.now(self.timezone))
        self._appointments.append(appointment)
        logger.debug("Stored appointment %s in memory", appointment.id)
        return appointment

    async def update_availability(
        self,
        professional_id: int,
        availability: WeeklyAvailability,
    ) -> Professional:
        professional = self._professionals.get(professional_id)
        if professional is None:
            raise StoreError(f"Unknown professional: {professional_id}")
        professional.availability = availability
        return professional
