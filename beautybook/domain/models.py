"""
Domain models for weekly availability, services, professionals and appointments.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping

from pendulum import DateTime


DEFAULT_SLOT_INTERVAL_MINUTES = 15
DEFAULT_DAY_RANGE = (9.0, 18.0)
HOUR_GRANULARITY = 0.5


@dataclass(frozen=True)
class TimeRange:
    """
    Open hours within one weekday as fractional hours since midnight.

    Invariant: 0 <= start < end <= 24, both on a half-hour boundary.
    """
    start: float
    end: float

    def __post_init__(self):
        if self.start < 0 or self.end > 24:
            raise ValueError(f"Time range {self.start}-{self.end} must stay within 0 and 24 hours")
        if self.start >= self.end:
            raise ValueError(f"Start hour {self.start} must be before end hour {self.end}")
        for value in (self.start, self.end):
            if (value / HOUR_GRANULARITY) != int(value / HOUR_GRANULARITY):
                raise ValueError(f"Hour {value} is not on a half-hour boundary")

    @property
    def start_minutes(self) -> int:
        return int(round(self.start * 60))

    @property
    def end_minutes(self) -> int:
        return int(round(self.end * 60))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end_minutes - self.start_minutes

    def label(self) -> str:
        return f"{format_hour(self.start)} - {format_hour(self.end)}"

    def __str__(self) -> str:
        return self.label()


def format_hour(value: float) -> str:
    """Format fractional hours as HH:MM (24.0 becomes 24:00)."""
    minutes = int(round(value * 60))
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class WeeklyAvailability:
    """
    Recurring weekly open hours keyed by weekday (0=Sunday .. 6=Saturday).

    A missing weekday means the professional is closed that day. Ranges of
    one day may overlap; overlapping coverage is simply treated as open time.
    The editing helpers never mutate in place, they return a new template.
    """

    def __init__(self, days: Mapping[int, Iterable[TimeRange]] | None = None):
        self._days: Dict[int, List[TimeRange]] = {}
        for weekday, ranges in (days or {}).items():
            weekday = int(weekday)
            if weekday not in range(7):
                raise ValueError(f"Weekday must be between 0 and 6, got {weekday}")
            ranges = list(ranges)
            if ranges:
                self._days[weekday] = ranges

    @classmethod
    def from_mapping(cls, data: Mapping[Any, Iterable[Mapping[str, float]]] | None) -> "WeeklyAvailability":
        """Build from the stored JSON form, e.g. {"2": [{"start": 9, "end": 12}]}."""
        days: Dict[int, List[TimeRange]] = {}
        for key, items in (data or {}).items():
            days[int(key)] = [
                TimeRange(start=float(item["start"]), end=float(item["end"]))
                for item in items
            ]
        return cls(days)

    def to_mapping(self) -> Dict[str, List[Dict[str, float]]]:
        return {
            str(weekday): [{"start": r.start, "end": r.end} for r in ranges]
            for weekday, ranges in sorted(self._days.items())
        }

    @staticmethod
    def weekday_of(day: date) -> int:
        """Weekday index of a calendar date with Sunday as 0."""
        return day.isoweekday() % 7

    def ranges_for(self, weekday: int) -> List[TimeRange]:
        return list(self._days.get(weekday, []))

    def is_open_on(self, weekday: int) -> bool:
        return bool(self._days.get(weekday))

    def open_weekdays(self) -> List[int]:
        return sorted(self._days)

    # Editing helpers used by the dashboard availability editor.

    def toggle_day(self, weekday: int) -> "WeeklyAvailability":
        days = self._copy_days()
        if weekday in days:
            del days[weekday]
        else:
            days[weekday] = [TimeRange(*DEFAULT_DAY_RANGE)]
        return WeeklyAvailability(days)

    def add_range(self, weekday: int) -> "WeeklyAvailability":
        days = self._copy_days()
        current = days.get(weekday, [])
        new_start = current[-1].end if current else DEFAULT_DAY_RANGE[0]
        new_end = new_start + 1
        if new_end > 24:
            return self
        days[weekday] = current + [TimeRange(new_start, new_end)]
        return WeeklyAvailability(days)

    def remove_range(self, weekday: int, index: int) -> "WeeklyAvailability":
        days = self._copy_days()
        if weekday not in days:
            return self
        remaining = [r for i, r in enumerate(days[weekday]) if i != index]
        if remaining:
            days[weekday] = remaining
        else:
            del days[weekday]
        return WeeklyAvailability(days)

    def change_boundary(self, weekday: int, index: int, which: str, value: float) -> "WeeklyAvailability":
        """
        Move the start or end of one range, nudging the opposite boundary
        by half an hour when the edit would leave the range empty.
        """
        if which not in ("start", "end"):
            raise ValueError(f"Boundary must be 'start' or 'end', got {which!r}")
        days = self._copy_days()
        if weekday not in days:
            return self

        current = days[weekday][index]
        start, end = current.start, current.end
        if which == "start":
            start = value
            if start >= end:
                end = min(start + HOUR_GRANULARITY, 24.0)
        else:
            end = value
            if end <= start:
                start = max(end - HOUR_GRANULARITY, 0.0)

        days[weekday][index] = TimeRange(start, end)
        return WeeklyAvailability(days)

    def _copy_days(self) -> Dict[int, List[TimeRange]]:
        return {weekday: list(ranges) for weekday, ranges in self._days.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WeeklyAvailability):
            return NotImplemented
        return self._days == other._days

    def __repr__(self) -> str:
        return f"WeeklyAvailability({self.to_mapping()!r})"


@dataclass(frozen=True)
class Service:
    """A bookable service; its duration drives how much open time a booking uses."""
    id: int
    name: str
    duration_minutes: int
    price: float
    description: str = ""
    icon: str = ""

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"Service duration must be positive, got {self.duration_minutes}")


@dataclass
class Professional:
    """
    Owner of a weekly availability template and a list of offered services.
    """
    id: int
    name: str
    availability: WeeklyAvailability = field(default_factory=WeeklyAvailability)
    slot_interval_minutes: int | None = DEFAULT_SLOT_INTERVAL_MINUTES
    service_ids: List[int] = field(default_factory=list)
    user_id: str | None = None
    specialty: str = ""
    bio: str = ""
    photo_url: str = ""

    @property
    def slot_interval(self) -> int:
        """Candidate step in minutes, falling back to the default when unset."""
        return self.interval_or(DEFAULT_SLOT_INTERVAL_MINUTES)

    def interval_or(self, default_minutes: int) -> int:
        if not self.slot_interval_minutes or self.slot_interval_minutes <= 0:
            return default_minutes
        return self.slot_interval_minutes

    def offers(self, service_id: int) -> bool:
        return service_id in self.service_ids


@dataclass(frozen=True)
class AppointmentDraft:
    """A fully formed appointment before the store assigns id and creation time."""
    professional_id: int
    service_id: int
    client_name: str
    client_contact: str
    start_time: DateTime
    end_time: DateTime


@dataclass(frozen=True)
class Appointment:
    """
    A persisted booking. end_time is fixed at creation from the service
    duration and never recomputed.
    """
    id: int
    professional_id: int
    service_id: int
    client_name: str
    client_contact: str
    start_time: DateTime
    end_time: DateTime
    created_at: DateTime | None = None

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Open-interval overlap; touching endpoints do not conflict."""
        return start < self.end_time and end > self.start_time

    @classmethod
    def from_draft(cls, draft: AppointmentDraft, id: int, created_at: DateTime | None = None) -> "Appointment":
        return cls(
            id=id,
            professional_id=draft.professional_id,
            service_id=draft.service_id,
            client_name=draft.client_name,
            client_contact=draft.client_contact,
            start_time=draft.start_time,
            end_time=draft.end_time,
            created_at=created_at,
        )


@dataclass(frozen=True)
class CandidateSlot:
    """An ephemeral start time with its availability. Never persisted."""
    time: DateTime
    is_available: bool

    def format_display(self) -> str:
        return self.time.format("HH:mm")
