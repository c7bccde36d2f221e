"""
Booking submission gate: validates client details and hands a fully formed
appointment to the persistence collaborator, one submission at a time.
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Tuple
from urllib.parse import quote

from pendulum import DateTime

from .exceptions import (
    SubmissionError,
    SubmissionInProgressError,
    ValidationError,
    ValidationReason,
)
from .models import Appointment, AppointmentDraft, CandidateSlot, Professional, Service


logger = logging.getLogger(__name__)

CONTACT_SEPARATORS = re.compile(r"[\s()\-]")

CreateAppointment = Callable[[AppointmentDraft], Awaitable[Appointment]]


class BookingGate:
    """
    Submission gate owned by a single confirmation dialog.

    A boolean guard refuses re-entrant submissions while the store call is
    awaited. Failures are surfaced once; nothing is retried and no local
    appointment list is updated optimistically.
    """

    def __init__(self, create_appointment: CreateAppointment, phone_prefix: str = "+55"):
        self._create_appointment = create_appointment
        self._contact_pattern = re.compile(rf"^{re.escape(phone_prefix)}[0-9]{{10,11}}$")
        self.is_submitting = False

    def validate_client(self, client_name: str, client_contact: str) -> Tuple[str, str]:
        """
        Validate client identity fields, first failure wins.

        Returns:
            The trimmed name and the contact stripped of separators

        Raises:
            ValidationError: EMPTY_NAME or INVALID_CONTACT
        """
        name = (client_name or "").strip()
        if not name:
            raise ValidationError(ValidationReason.EMPTY_NAME)

        contact = CONTACT_SEPARATORS.sub("", client_contact or "")
        if not self._contact_pattern.match(contact):
            raise ValidationError(ValidationReason.INVALID_CONTACT)

        return name, contact

    async def submit(
        self,
        slot: CandidateSlot,
        service: Service,
        professional: Professional,
        client_name: str,
        client_contact: str,
    ) -> Appointment:
        """
        Validate and persist a booking for the chosen slot.

        Raises:
            SubmissionInProgressError: If this gate is already submitting
            ValidationError: If the client fields are invalid
            SubmissionError: If the store rejects or fails the create
        """
        if self.is_submitting:
            raise SubmissionInProgressError("Um agendamento já está sendo enviado.")

        name, contact = self.validate_client(client_name, client_contact)

        draft = AppointmentDraft(
            professional_id=professional.id,
            service_id=service.id,
            client_name=name,
            client_contact=contact,
            start_time=slot.time,
            end_time=slot.time.add(minutes=service.duration_minutes),
        )

        self.is_submitting = True
        try:
            appointment = await self._create_appointment(draft)
        except Exception as exc:
            logger.error(
                "Could not create appointment for professional %s at %s: %s",
                professional.id,
                slot.time.to_iso8601_string(),
                exc,
            )
            raise SubmissionError(
                "Ocorreu um erro ao confirmar o agendamento. Por favor, tente novamente.",
                cause=exc,
            ) from exc
        finally:
            self.is_submitting = False

        logger.info("Booked appointment %s for professional %s", appointment.id, professional.id)
        return appointment


def google_calendar_link(appointment: Appointment, service: Service, professional_name: str) -> str:
    """Build an "add to Google Calendar" template URL for a confirmed booking."""

    def stamp(moment: DateTime) -> str:
        return moment.in_timezone("UTC").format("YYYYMMDD[T]HHmmss[Z]")

    text = f"Agendamento: {service.name} com {professional_name}"
    dates = f"{stamp(appointment.start_time)}/{stamp(appointment.end_time)}"
    details = (
        f"Serviço: {service.name}\n"
        f"Profissional: {professional_name}\n"
        f"Cliente: {appointment.client_name}\n\n"
        "Este é um compromisso agendado através da plataforma Beauty Pro."
    )
    location = "Local do Salão/Barbearia"

    return (
        "https://www.google.com/calendar/render?action=TEMPLATE"
        f"&text={quote(text, safe='')}"
        f"&dates={quote(dates, safe='')}"
        f"&details={quote(details, safe='')}"
        f"&location={quote(location, safe='')}"
    )
