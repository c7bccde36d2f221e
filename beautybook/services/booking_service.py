"""
Application services for resolving slots and booking appointments.

The service coordinates reads from the remote data store and delegates the
slot resolution to the domain-level ``SlotCalculator``. Store and notifier
are consumed through protocols, so tests and the CLI's mock mode can plug in
in-memory implementations.
"""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Dict, List, Protocol, Sequence

import pendulum
from pendulum import DateTime

from ..domain.booking import BookingGate
from ..domain.models import (
    Appointment,
    AppointmentDraft,
    CandidateSlot,
    Professional,
    Service,
    WeeklyAvailability,
)
from ..domain.slot_calculator import SlotCalculator


logger = logging.getLogger(__name__)


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"


class AppointmentStoreProtocol(Protocol):
    """Protocol describing the remote data store needed by the service."""

    async def list_professionals(self) -> List[Professional]:
        """Return every public professional profile."""

    async def get_professional(self, professional_id: int) -> Professional | None:
        """Return one professional, or None when the id is unknown."""

    async def find_professional_by_user(self, user_id: str) -> Professional | None:
        """Return the profile owned by an authenticated user, if any."""

    async def list_services(self, ids: Sequence[int] | None = None) -> List[Service]:
        """Return services, optionally restricted to the given ids."""

    async def fetch_appointments(self, professional_id: int) -> List[Appointment]:
        """Return all appointments of a professional, regardless of date."""

    async def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        """Persist a draft; the store assigns id and creation time."""

    async def update_availability(
        self,
        professional_id: int,
        availability: WeeklyAvailability,
    ) -> Professional:
        """Replace a professional's weekly availability template."""


class NotifierProtocol(Protocol):
    """Fire-and-forget notification side channel."""

    async def request_permission(self) -> PermissionState:
        """Ask for permission to notify."""

    async def notify(self, title: str, body: str) -> None:
        """Deliver one notification."""


class BookingService:
    """
    Orchestrates store reads, slot calculation and booking submission.

    Every slot computation re-reads the appointment list, so a booking made
    in another session shows up on the next call and never sooner.
    """

    def __init__(
        self,
        store: AppointmentStoreProtocol,
        slot_calculator: SlotCalculator,
        notifier: NotifierProtocol | None = None,
        phone_prefix: str = "+55",
    ) -> None:
        self._store = store
        self._slot_calculator = slot_calculator
        self._notifier = notifier
        self._phone_prefix = phone_prefix

    async def get_professional(self, professional_id: int) -> Professional:
        professional = await self._store.get_professional(professional_id)
        if professional is None:
            raise LookupError(f"Profissional não encontrado: {professional_id}")
        return professional

    async def professional_for_user(self, user_id: str) -> Professional:
        """Profile owned by the logged-in user."""
        professional = await self._store.find_professional_by_user(user_id)
        if professional is None:
            raise LookupError("Usuário logado ainda não possui perfil profissional.")
        return professional

    async def services_for(self, professional: Professional) -> List[Service]:
        """Services the professional offers, in the order of their service ids."""
        if not professional.service_ids:
            return []
        services = await self._store.list_services(professional.service_ids)
        by_id = {service.id: service for service in services}
        return [by_id[sid] for sid in professional.service_ids if sid in by_id]

    async def service_for(self, professional: Professional, service_id: int) -> Service:
        if not professional.offers(service_id):
            raise LookupError(
                f"Serviço {service_id} não é oferecido por {professional.name}"
            )
        services = await self._store.list_services([service_id])
        if not services:
            raise LookupError(f"Serviço não encontrado: {service_id}")
        return services[0]

    async def find_slots(
        self,
        *,
        professional_id: int,
        service_id: int,
        day: date,
        now: DateTime | None = None,
    ) -> List[CandidateSlot]:
        """Resolve the slot list of one date from fresh store data."""
        professional = await self.get_professional(professional_id)
        service = await self.service_for(professional, service_id)
        appointments = await self._store.fetch_appointments(professional.id)

        return self._slot_calculator.slots_for_date(
            day,
            professional,
            service,
            appointments,
            now=now,
        )

    async def month_availability(
        self,
        *,
        professional_id: int,
        service_id: int,
        year: int,
        month: int,
        now: DateTime | None = None,
    ) -> Dict[date, bool]:
        """Resolve the per-day "has a free slot" flags of one month."""
        professional = await self.get_professional(professional_id)
        service = await self.service_for(professional, service_id)
        appointments = await self._store.fetch_appointments(professional.id)

        return self._slot_calculator.month_availability(
            year,
            month,
            professional,
            service,
            appointments,
            now=now,
        )

    def open_booking(self) -> BookingGate:
        """Create the submission gate for one confirmation dialog."""
        return BookingGate(self._store.create_appointment, phone_prefix=self._phone_prefix)

    async def book(
        self,
        gate: BookingGate,
        *,
        slot: CandidateSlot,
        professional: Professional,
        service: Service,
        client_name: str,
        client_contact: str,
    ) -> Appointment:
        """
        Submit a booking through the gate, then send the confirmation
        notification. Notification failures never fail the booking.
        """
        appointment = await gate.submit(slot, service, professional, client_name, client_contact)
        await self._notify_booked(appointment, service, professional)
        return appointment

    async def _notify_booked(
        self,
        appointment: Appointment,
        service: Service,
        professional: Professional,
    ) -> None:
        if self._notifier is None:
            return

        try:
            permission = await self._notifier.request_permission()
            if permission != PermissionState.GRANTED:
                logger.info("Notification permission %s; skipping confirmation", permission.value)
                return

            await self._notifier.notify(
                f"Agendamento Confirmado: {service.name}",
                f"Seu horário com {professional.name} às "
                f"{appointment.start_time.format('HH:mm')} está confirmado!",
            )
        except Exception as exc:
            logger.warning("Could not send booking notification: %s", exc)

    async def appointments_for(self, professional_id: int) -> List[Appointment]:
        return await self._store.fetch_appointments(professional_id)

    async def update_availability(
        self,
        professional_id: int,
        availability: WeeklyAvailability,
    ) -> Professional:
        return await self._store.update_availability(professional_id, availability)

    def today(self) -> date:
        return pendulum.today(self._slot_calculator.timezone).date()
