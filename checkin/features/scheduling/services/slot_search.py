"""
Slot search over a day's active hours in 15-minute steps.

A day is saturated once its used 15-minute keys reach the window's slot
capacity; saturated days roll over to the next day's start of active
hours, at most MAX_ATTEMPTS times before giving up.
"""

from datetime import date, datetime, timedelta, tzinfo

from checkin.features.scheduling.constants import (
    MAX_ATTEMPTS,
    MAX_SEARCH_OFFSET,
    PRIORITY_SCORES,
    SCORE_WEIGHTS,
    TIME_SLOT_INTERVAL,
)
from checkin.features.scheduling.domain.errors import NoSlotAvailableError
from checkin.features.scheduling.domain.models import ScoredSlot
from checkin.features.scheduling.domain.preferences import Contact, DayWindow, TimePreferences
from checkin.features.scheduling.repository.reminder_repository import ReminderRepository
from checkin.features.scheduling.services.blocking_policy import BlockingPolicy
from checkin.features.scheduling.services.gap_policy import GapPolicy
from checkin.features.scheduling.services.preliminary_date import (
    day_bounds,
    local_at,
    minutes_of_day,
)
from checkin.features.scheduling.services.time_preferences import TimePreferenceResolver
from checkin.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def slot_capacity(preferences: TimePreferences) -> int:
    return max(preferences.active_hours.length_minutes // TIME_SLOT_INTERVAL, 0)


def floor_to_slot(instant: datetime) -> datetime:
    return instant.replace(
        minute=instant.minute - instant.minute % TIME_SLOT_INTERVAL, second=0, microsecond=0
    )


def position_score(minutes: int, window: DayWindow) -> float:
    """Triangular score: 1.0 at the window midpoint, 0 at and beyond the edges."""
    start, end = window.start.minutes, window.end.minutes
    if not start <= minutes <= end:
        return 0.0
    if end == start:
        return 1.0
    midpoint = (start + end) / 2
    return max(0.0, 1.0 - abs(minutes - midpoint) / ((end - start) / 2))


class SlotSearch:
    def __init__(
        self,
        tz: tzinfo,
        resolver: TimePreferenceResolver,
        blocking: BlockingPolicy,
        gaps: GapPolicy,
        repository: ReminderRepository,
    ):
        self.tz = tz
        self.resolver = resolver
        self.blocking = blocking
        self.gaps = gaps
        self.repository = repository

    def is_available(self, instant: datetime, contact: Contact) -> bool:
        return not self.blocking.is_blocked(instant, contact) and not self.gaps.has_conflict(instant)

    def used_slot_keys(self, day: date) -> set[tuple[int, int]]:
        """(hour, minute) keys, floored to the slot interval, used on a local day."""
        start, end = day_bounds(day, self.tz)
        keys = set()
        for reminder in self.repository.list_in_window(start, end):
            local = floor_to_slot(reminder.scheduled_time.astimezone(self.tz))
            keys.add((local.hour, local.minute))
        return keys

    def is_day_saturated(self, day: date, preferences: TimePreferences) -> bool:
        return len(self.used_slot_keys(day)) >= slot_capacity(preferences)

    def find_available_slot(self, candidate: datetime, contact: Contact) -> datetime:
        """
        Return the closest free slot to ``candidate``.

        Raises:
            NoSlotAvailableError: when the bidirectional search finds nothing,
                or every rolled-over day is saturated
        """
        preferences = self.resolver.resolve(contact)
        window = preferences.active_hours
        if slot_capacity(preferences) <= 0:
            raise NoSlotAvailableError(f"Active hours {window} admit no slots", contact_id=contact.id)

        requested = candidate.astimezone(self.tz)
        rollovers = 0
        while self.is_day_saturated(requested.date(), preferences):
            rollovers += 1
            if rollovers > MAX_ATTEMPTS:
                raise NoSlotAvailableError(
                    "Every day searched is fully booked", contact_id=contact.id, recoverable=False
                )
            next_day = requested.date() + timedelta(days=1)
            requested = local_at(next_day, window.start.minutes, self.tz)

        if rollovers:
            logger.debug(
                "Saturated days skipped", contact_id=contact.id, rollovers=rollovers, day=str(requested.date())
            )

        requested = floor_to_slot(requested)
        if self.is_available(requested, contact):
            return requested

        base_minutes = minutes_of_day(requested)
        for offset in range(1, MAX_SEARCH_OFFSET):
            for direction in (-1, 1):
                minutes = base_minutes + direction * offset * TIME_SLOT_INTERVAL
                if not window.contains(minutes):
                    continue
                slot = local_at(requested.date(), minutes, self.tz)
                if self.is_available(slot, contact):
                    return slot

        raise NoSlotAvailableError(
            f"No available slot near {requested.isoformat()}", contact_id=contact.id
        )

    def score_slot(self, instant: datetime, contact: Contact) -> float:
        preferences = self.resolver.resolve(contact)
        local = instant.astimezone(self.tz)
        return (
            self.gaps.distance_score(instant) * SCORE_WEIGHTS["DISTANCE_FROM_REMINDERS"]
            + position_score(minutes_of_day(local), preferences.active_hours)
            * SCORE_WEIGHTS["PREFERRED_TIME_POSITION"]
            + PRIORITY_SCORES[contact.scheduling.priority] * SCORE_WEIGHTS["CONTACT_PRIORITY"]
        )

    def candidate_slots(self, day: date, contact: Contact) -> list[ScoredSlot]:
        """Every free slot boundary in the day's active hours, best score first."""
        window = self.resolver.resolve(contact).active_hours
        candidates = []
        for minutes in range(window.start.minutes, window.end.minutes + 1, TIME_SLOT_INTERVAL):
            slot = local_at(day, minutes, self.tz)
            if self.is_available(slot, contact):
                candidates.append(ScoredSlot(scheduled_time=slot, score=self.score_slot(slot, contact)))
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates
