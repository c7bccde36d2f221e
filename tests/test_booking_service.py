"""
Tests for the BookingService orchestration layer.
"""

import asyncio
from typing import List, Tuple

import pendulum
import pytest

from beautybook.adapters.memory_store import MemoryStore
from beautybook.domain.exceptions import SubmissionError
from beautybook.domain.models import (
    Appointment,
    Professional,
    Service,
    TimeRange,
    WeeklyAvailability,
)
from beautybook.domain.slot_calculator import SlotCalculator
from beautybook.services.booking_service import BookingService, PermissionState


TZ = "America/Sao_Paulo"
TUESDAY = pendulum.date(2024, 11, 26)
EARLIER = pendulum.datetime(2024, 11, 1, 8, tz=TZ)


class StubNotifier:
    """Minimal stub matching NotifierProtocol."""

    def __init__(self, permission=PermissionState.GRANTED, error: Exception | None = None):
        self.permission = permission
        self.error = error
        self.sent: List[Tuple[str, str]] = []

    async def request_permission(self):
        return self.permission

    async def notify(self, title, body):
        if self.error is not None:
            raise self.error
        self.sent.append((title, body))


def _build_service(notifier=None, appointments=()) -> Tuple[BookingService, MemoryStore]:
    professional = Professional(
        id=1,
        name="Ana Silva",
        availability=WeeklyAvailability({2: [TimeRange(9, 12), TimeRange(13, 18)]}),
        slot_interval_minutes=60,
        service_ids=[1],
        user_id="auth-user-1",
    )
    services = [
        Service(id=1, name="Corte de Cabelo", duration_minutes=60, price=80),
        Service(id=2, name="Barba", duration_minutes=30, price=50),
    ]
    store = MemoryStore(professionals=[professional], services=services, appointments=appointments, timezone=TZ)
    service = BookingService(
        store=store,
        slot_calculator=SlotCalculator(timezone=TZ),
        notifier=notifier,
    )
    return service, store


def _find(service: BookingService):
    return asyncio.run(service.find_slots(professional_id=1, service_id=1, day=TUESDAY, now=EARLIER))


def _book(service: BookingService, slot, gate=None, contact="+5511988888888") -> Appointment:
    async def run():
        professional = await service.get_professional(1)
        chosen = await service.service_for(professional, 1)
        return await service.book(
            gate or service.open_booking(),
            slot=slot,
            professional=professional,
            service=chosen,
            client_name="Joana",
            client_contact=contact,
        )

    return asyncio.run(run())


def test_find_slots_uses_store_data():
    existing = Appointment(
        id=1, professional_id=1, service_id=1, client_name="Maria", client_contact="+5521999992222",
        start_time=pendulum.datetime(2024, 11, 26, 10, tz=TZ),
        end_time=pendulum.datetime(2024, 11, 26, 11, tz=TZ),
    )
    service, _ = _build_service(appointments=[existing])

    slots = _find(service)

    assert [s.time.hour for s in slots if s.is_available] == [9, 11, 13, 14, 15, 16, 17]
    assert [s.time.hour for s in slots if not s.is_available] == [10]


def test_new_booking_shows_up_on_next_read():
    service, store = _build_service()
    first_slot = _find(service)[0]

    appointment = _book(service, first_slot)

    assert appointment.id == 1
    assert store.create_calls == 1
    assert _find(service)[0].is_available is False


def test_booking_sends_confirmation_notification():
    notifier = StubNotifier()
    service, _ = _build_service(notifier=notifier)

    _book(service, _find(service)[0])

    assert notifier.sent == [
        ("Agendamento Confirmado: Corte de Cabelo", "Seu horário com Ana Silva às 09:00 está confirmado!")
    ]


def test_notification_failure_does_not_fail_booking():
    notifier = StubNotifier(error=RuntimeError("push service down"))
    service, store = _build_service(notifier=notifier)

    appointment = _book(service, _find(service)[0])

    assert appointment.client_name == "Joana"
    assert len(asyncio.run(store.fetch_appointments(1))) == 1


def test_denied_permission_skips_notification():
    notifier = StubNotifier(permission=PermissionState.DENIED)
    service, _ = _build_service(notifier=notifier)

    _book(service, _find(service)[0])

    assert notifier.sent == []


def test_store_conflict_surfaces_as_submission_error():
    """Two viewers with the same stale slot list: the second write is refused."""
    service, store = _build_service()
    stale_slot = _find(service)[0]

    _book(service, stale_slot)
    with pytest.raises(SubmissionError):
        _book(service, stale_slot, contact="+5511977777777")

    assert store.create_calls == 2
    assert len(asyncio.run(store.fetch_appointments(1))) == 1


def test_service_not_offered_is_rejected():
    service, _ = _build_service()

    with pytest.raises(LookupError, match="não é oferecido"):
        asyncio.run(service.find_slots(professional_id=1, service_id=2, day=TUESDAY, now=EARLIER))


def test_unknown_professional_is_rejected():
    service, _ = _build_service()

    with pytest.raises(LookupError):
        asyncio.run(service.get_professional(99))


def test_month_availability_through_service():
    service, _ = _build_service()

    flags = asyncio.run(
        service.month_availability(professional_id=1, service_id=1, year=2024, month=11, now=EARLIER)
    )

    assert [day.day for day, free in flags.items() if free] == [5, 12, 19, 26]


def test_professional_for_user():
    service, _ = _build_service()

    assert asyncio.run(service.professional_for_user("auth-user-1")).name == "Ana Silva"
    with pytest.raises(LookupError):
        asyncio.run(service.professional_for_user("someone-else"))
