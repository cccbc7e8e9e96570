"""
Fallback strategies applied when no slot qualifies on the requested day.

Strategies run in order and the first hit wins:

1. shift_within_day: afternoon scan of the requested day
2. find_nearest_preferred_day: preferred days within the priority flexibility
3. expand_time_range: active hours widened by an hour on each side
4. adjust_for_priority: any day within the priority flexibility

Every strategy try and every candidate day costs one attempt; the call
fails once MAX_ATTEMPTS is reached. A result from strategies 2-4 is passed
through shift_within_day on its own day, which can move the time later in
that day but never changes the day that was chosen.
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta, tzinfo

from checkin.features.scheduling.constants import (
    AFTERNOON_HOUR,
    DAY_NAMES,
    EXPANSION_HOURS,
    MAX_ATTEMPTS,
    PRIORITY_FLEXIBILITY,
    TIME_SLOT_INTERVAL,
)
from checkin.features.scheduling.domain.errors import (
    MaxAttemptsExceededError,
    NoSlotAvailableError,
)
from checkin.features.scheduling.domain.preferences import Contact, TimePreferences
from checkin.features.scheduling.services.preliminary_date import local_at, minutes_of_day
from checkin.features.scheduling.services.slot_search import SlotSearch, slot_capacity
from checkin.features.scheduling.services.time_preferences import TimePreferenceResolver
from checkin.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MINUTES_PER_DAY = 24 * 60


class _AttemptBudget:
    def __init__(self, used: int, contact_id: str):
        self.used = used
        self.contact_id = contact_id

    def spend(self) -> None:
        if self.used >= MAX_ATTEMPTS:
            raise MaxAttemptsExceededError(
                f"Conflict resolution gave up after {self.used} attempts",
                contact_id=self.contact_id,
                recoverable=False,
            )
        self.used += 1


class ConflictResolver:
    def __init__(self, tz: tzinfo, resolver: TimePreferenceResolver, slot_search: SlotSearch):
        self.tz = tz
        self.resolver = resolver
        self.slot_search = slot_search
        self.last_attempts = 0

    def resolve_conflict(self, instant: datetime, contact: Contact, attempts: int = 0) -> datetime:
        """
        Find an alternative instant for ``instant``.

        Raises:
            MaxAttemptsExceededError: attempts exhausted, the requested day is
                already at capacity, or no strategy produced a slot
        """
        budget = _AttemptBudget(attempts, contact.id)
        self.last_attempts = attempts
        if attempts >= MAX_ATTEMPTS:
            raise MaxAttemptsExceededError(
                f"Conflict resolution gave up after {attempts} attempts", contact_id=contact.id
            )

        preferences = self.resolver.resolve(contact)
        local = instant.astimezone(self.tz)
        if self.slot_search.is_day_saturated(local.date(), preferences):
            raise MaxAttemptsExceededError(
                f"All {slot_capacity(preferences)} slots on {local.date()} are taken",
                contact_id=contact.id,
                recoverable=False,
            )

        strategies: list[tuple[str, Callable[..., datetime | None]]] = [
            ("shift_within_day", self.shift_within_day),
            ("find_nearest_preferred_day", self.find_nearest_preferred_day),
            ("expand_time_range", self.expand_time_range),
            ("adjust_for_priority", self.adjust_for_priority),
        ]

        try:
            for name, strategy in strategies:
                budget.spend()
                result = strategy(local, contact, preferences, budget)
                if result is None:
                    continue

                if name != "shift_within_day":
                    result = self.shift_within_day(result, contact, preferences) or result

                logger.info(
                    "Conflict resolved",
                    contact_id=contact.id,
                    strategy=name,
                    attempts=budget.used,
                    scheduled_time=result.isoformat(),
                )
                return result
        finally:
            self.last_attempts = budget.used

        raise MaxAttemptsExceededError(
            "All conflict resolution strategies exhausted", contact_id=contact.id, recoverable=False
        )

    def _scan(
        self, day: date, start: int, end: int, contact: Contact
    ) -> datetime | None:
        for minutes in range(max(start, 0), min(end, MINUTES_PER_DAY - 1) + 1, TIME_SLOT_INTERVAL):
            slot = local_at(day, minutes, self.tz)
            if self.slot_search.is_available(slot, contact):
                return slot
        return None

    def shift_within_day(
        self,
        instant: datetime,
        contact: Contact,
        preferences: TimePreferences,
        budget: _AttemptBudget | None = None,
    ) -> datetime | None:
        window = preferences.active_hours
        local = instant.astimezone(self.tz)
        start = max(AFTERNOON_HOUR * 60, window.start.minutes)
        return self._scan(local.date(), start, window.end.minutes, contact)

    def _clamped_candidate(self, day: date, instant: datetime, preferences: TimePreferences) -> datetime:
        window = preferences.active_hours
        minutes = minutes_of_day(instant)
        if not window.contains(minutes):
            minutes = window.start.minutes
        return local_at(day, minutes, self.tz)

    def _drift(
        self,
        instant: datetime,
        contact: Contact,
        preferences: TimePreferences,
        budget: _AttemptBudget,
        offsets: list[int],
        preferred_only: bool,
    ) -> datetime | None:
        for offset in offsets:
            day = instant.date() + timedelta(days=offset)
            if preferred_only and DAY_NAMES[day.weekday()] not in preferences.preferred_days:
                continue
            budget.spend()
            try:
                return self.slot_search.find_available_slot(
                    self._clamped_candidate(day, instant, preferences), contact
                )
            except NoSlotAvailableError:
                continue
        return None

    def find_nearest_preferred_day(
        self,
        instant: datetime,
        contact: Contact,
        preferences: TimePreferences,
        budget: _AttemptBudget,
    ) -> datetime | None:
        if not preferences.preferred_days:
            return None
        flexibility = PRIORITY_FLEXIBILITY[contact.scheduling.priority]
        offsets = [0]
        for i in range(1, flexibility + 1):
            offsets += [i, -i]
        return self._drift(instant, contact, preferences, budget, offsets, preferred_only=True)

    def expand_time_range(
        self,
        instant: datetime,
        contact: Contact,
        preferences: TimePreferences,
        budget: _AttemptBudget,
    ) -> datetime | None:
        window = preferences.active_hours
        expansion = EXPANSION_HOURS * 60
        return self._scan(
            instant.date(),
            window.start.minutes - expansion,
            window.end.minutes + expansion,
            contact,
        )

    def adjust_for_priority(
        self,
        instant: datetime,
        contact: Contact,
        preferences: TimePreferences,
        budget: _AttemptBudget,
    ) -> datetime | None:
        flexibility = PRIORITY_FLEXIBILITY[contact.scheduling.priority]
        offsets = []
        for i in range(1, flexibility + 1):
            offsets += [i, -i]
        return self._drift(instant, contact, preferences, budget, offsets, preferred_only=False)
