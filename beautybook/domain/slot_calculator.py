"""
Core business logic for resolving bookable time slots.

Pure functions over weekly availability and booked appointments; callers
pass in "now" and the data, nothing here touches a store.
"""

from datetime import date
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

import pendulum
from pendulum import DateTime

from .models import (
    DEFAULT_SLOT_INTERVAL_MINUTES,
    Appointment,
    CandidateSlot,
    Professional,
    Service,
    TimeRange,
    WeeklyAvailability,
)


Candidate = Tuple[DateTime, DateTime]  # (start instant, closing instant of its range)


class CandidateSequence:
    """
    Lazy, restartable sequence of candidate start instants for one date.

    Every iteration re-expands the ranges, so the sequence can be walked
    any number of times. Ascending within one range, no order across ranges.
    """

    def __init__(self, day: date, ranges: Sequence[TimeRange], interval_minutes: int, timezone: str):
        self._day = day
        self._ranges = list(ranges)
        self._interval = interval_minutes
        self._timezone = timezone

    def __iter__(self) -> Iterator[Candidate]:
        for time_range in self._ranges:
            cursor = self._at(time_range.start_minutes)
            block_end = self._at(time_range.end_minutes)

            while cursor < block_end:
                yield cursor, block_end
                cursor = cursor.add(minutes=self._interval)

    def instants(self) -> List[DateTime]:
        return [instant for instant, _ in self]

    def _at(self, minutes: int) -> DateTime:
        # Wall-clock construction; 24:00 is the following midnight.
        midnight = pendulum.datetime(self._day.year, self._day.month, self._day.day, tz=self._timezone)
        if minutes >= 24 * 60:
            return midnight.add(days=1)
        return midnight.set(hour=minutes // 60, minute=minutes % 60)


class SlotCalculator:
    """
    Calculates offerable appointment start times for a professional.

    Algorithm:
    1. Expand the weekday's ranges into candidate instants every slot interval
    2. Drop candidates in the past or whose service would run past closing
    3. Mark the survivors available unless they overlap a booked appointment
    4. Deduplicate by instant (OR-ing availability) and sort ascending
    """

    def __init__(
        self,
        timezone: str = "America/Sao_Paulo",
        default_interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES
    ):
        """
        Args:
            timezone: IANA zone the weekly hours are expressed in
            default_interval_minutes: Step used for professionals without their own interval
        """
        if default_interval_minutes <= 0:
            raise ValueError(f"Slot interval must be positive, got {default_interval_minutes}")
        self.timezone = timezone
        self.default_interval_minutes = default_interval_minutes

    def expand_candidates(
        self,
        day: date,
        availability: WeeklyAvailability,
        slot_interval_minutes: int
    ) -> CandidateSequence:
        """
        Expand the recurring ranges of the date's weekday into candidates.

        Ranges are expanded independently, so overlapping ranges may yield
        the same instant twice; ``aggregate`` removes those duplicates.
        """
        if slot_interval_minutes <= 0:
            raise ValueError(f"Slot interval must be positive, got {slot_interval_minutes}")

        ranges = availability.ranges_for(WeeklyAvailability.weekday_of(day))
        return CandidateSequence(day, ranges, slot_interval_minutes, self.timezone)

    @staticmethod
    def is_feasible(
        candidate: DateTime,
        duration_minutes: int,
        block_end: DateTime,
        now: DateTime
    ) -> bool:
        """
        Check that a candidate is in the future and the whole service fits
        before the range closes. Ending exactly at closing is allowed.
        """
        if candidate <= now:
            return False
        return candidate.add(minutes=duration_minutes) <= block_end

    @staticmethod
    def is_available(
        start: DateTime,
        end: DateTime,
        appointments: Iterable[Appointment]
    ) -> bool:
        """Return False if the window [start, end) overlaps any appointment."""
        return not any(appointment.overlaps(start, end) for appointment in appointments)

    @staticmethod
    def aggregate(candidates: Iterable[CandidateSlot]) -> List[CandidateSlot]:
        """
        Deduplicate candidates by instant and sort them ascending.

        A duplicated instant is available if any of its copies is available.
        """
        merged: Dict[DateTime, bool] = {}

        for slot in candidates:
            merged[slot.time] = merged.get(slot.time, False) or slot.is_available

        return [
            CandidateSlot(time=instant, is_available=available)
            for instant, available in sorted(merged.items(), key=lambda item: item[0])
        ]

    def slots_for_date(
        self,
        day: date,
        professional: Professional,
        service: Service,
        appointments: Sequence[Appointment],
        now: DateTime | None = None
    ) -> List[CandidateSlot]:
        """
        Compute the slot list for one date.

        Args:
            day: Calendar date to resolve
            professional: Owner of the weekly availability and slot interval
            service: Service being booked (fixes the duration)
            appointments: All of the professional's appointments, any date
            now: Evaluation instant; one value is used for the whole pass

        Returns:
            Sorted, deduplicated list of CandidateSlot objects
        """
        now = now or pendulum.now(self.timezone)
        snapshot = list(appointments)

        tagged: List[CandidateSlot] = []
        candidates = self.expand_candidates(
            day, professional.availability, professional.interval_or(self.default_interval_minutes)
        )

        for candidate, block_end in candidates:
            if not self.is_feasible(candidate, service.duration_minutes, block_end, now):
                continue

            candidate_end = candidate.add(minutes=service.duration_minutes)
            tagged.append(
                CandidateSlot(
                    time=candidate,
                    is_available=self.is_available(candidate, candidate_end, snapshot),
                )
            )

        return self.aggregate(tagged)

    def month_availability(
        self,
        year: int,
        month: int,
        professional: Professional,
        service: Service,
        appointments: Sequence[Appointment],
        now: DateTime | None = None
    ) -> Dict[date, bool]:
        """
        Report, for every day of the month, whether at least one slot is free.

        Used to decorate a calendar grid; recomputed on every call.
        """
        now = now or pendulum.now(self.timezone)
        snapshot = list(appointments)

        first = pendulum.date(year, month, 1)
        result: Dict[date, bool] = {}

        for offset in range(first.days_in_month):
            day = first.add(days=offset)
            slots = self.slots_for_date(day, professional, service, snapshot, now=now)
            result[day] = any(slot.is_available for slot in slots)

        return result
