"""
Read-only summaries of a professional's appointments for the dashboard.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Sequence

from pendulum import DateTime

from .models import Appointment, Professional, Service


@dataclass
class ClientSummary:
    """One client of a professional, identified by contact."""
    name: str
    contact: str
    appointments: int
    last_seen: DateTime


@dataclass(frozen=True)
class DashboardStats:
    appointments_today: int
    billing_today: float
    billing_month: float
    clients: int
    active_services: int


def client_roster(appointments: Iterable[Appointment]) -> List[ClientSummary]:
    """
    Group appointments by client contact, most recently seen first.

    The name kept is the one from the first appointment seen for a contact.
    """
    clients: Dict[str, ClientSummary] = {}

    for appointment in appointments:
        client = clients.get(appointment.client_contact)
        if client is None:
            clients[appointment.client_contact] = ClientSummary(
                name=appointment.client_name,
                contact=appointment.client_contact,
                appointments=1,
                last_seen=appointment.start_time,
            )
            continue

        client.appointments += 1
        if appointment.start_time > client.last_seen:
            client.last_seen = appointment.start_time

    return sorted(clients.values(), key=lambda c: c.last_seen, reverse=True)


def appointments_by_date(appointments: Iterable[Appointment]) -> Dict[date, List[Appointment]]:
    """Bucket appointments by local calendar date, each day sorted by start."""
    grouped: Dict[date, List[Appointment]] = defaultdict(list)

    for appointment in appointments:
        grouped[appointment.start_time.date()].append(appointment)

    return {
        day: sorted(items, key=lambda a: a.start_time)
        for day, items in sorted(grouped.items())
    }


def dashboard_stats(
    appointments: Sequence[Appointment],
    services: Sequence[Service],
    professional: Professional,
    today: date,
) -> DashboardStats:
    """Headline numbers for the dashboard home screen."""
    prices = {service.id: service.price for service in services}

    def price_of(appointment: Appointment) -> float:
        return prices.get(appointment.service_id, 0.0)

    todays = [a for a in appointments if a.start_time.date() == today]
    this_month = [
        a for a in appointments
        if a.start_time.year == today.year and a.start_time.month == today.month
    ]

    return DashboardStats(
        appointments_today=len(todays),
        billing_today=sum(price_of(a) for a in todays),
        billing_month=sum(price_of(a) for a in this_month),
        clients=len({a.client_contact for a in appointments}),
        active_services=len([s for s in services if professional.offers(s.id)]),
    )
