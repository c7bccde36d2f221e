"""
Tests for the dashboard summaries.
"""

import pendulum

from beautybook.domain.insights import appointments_by_date, client_roster, dashboard_stats
from beautybook.domain.models import Appointment, Professional, Service


TZ = "America/Sao_Paulo"


def appointment(appointment_id: int, day: int, hour: int, name: str, contact: str, service_id: int = 1) -> Appointment:
    start = pendulum.datetime(2024, 11, day, hour, tz=TZ)
    return Appointment(
        id=appointment_id,
        professional_id=1,
        service_id=service_id,
        client_name=name,
        client_contact=contact,
        start_time=start,
        end_time=start.add(hours=1),
    )


APPOINTMENTS = [
    appointment(1, 26, 14, "Joana", "+5511999991111"),
    appointment(2, 20, 9, "Maria", "+5521999992222", service_id=2),
    appointment(3, 26, 9, "Joana Souza", "+5511999991111"),
    appointment(4, 28, 10, "Pedro", "+5531999993333", service_id=2),
]


def test_client_roster_groups_by_contact():
    roster = client_roster(APPOINTMENTS)

    assert [c.name for c in roster] == ["Pedro", "Joana", "Maria"]
    joana = roster[1]
    assert joana.appointments == 2
    assert joana.last_seen == pendulum.datetime(2024, 11, 26, 14, tz=TZ)


def test_appointments_by_date_sorts_days_and_times():
    grouped = appointments_by_date(APPOINTMENTS)

    assert [day.day for day in grouped] == [20, 26, 28]
    assert [a.id for a in grouped[pendulum.date(2024, 11, 26)]] == [3, 1]


def test_dashboard_stats():
    professional = Professional(id=1, name="Ana Silva", service_ids=[1])
    services = [
        Service(id=1, name="Corte de Cabelo", duration_minutes=60, price=80),
        Service(id=2, name="Barba", duration_minutes=30, price=50),
    ]

    stats = dashboard_stats(APPOINTMENTS, services, professional, pendulum.date(2024, 11, 26))

    assert stats.appointments_today == 2
    assert stats.billing_today == 160
    assert stats.billing_month == 260
    assert stats.clients == 3
    assert stats.active_services == 1


def test_dashboard_stats_without_appointments():
    stats = dashboard_stats([], [], Professional(id=1, name="Ana"), pendulum.date(2024, 11, 26))

    assert (stats.appointments_today, stats.billing_month, stats.clients) == (0, 0, 0)
