"""
Scheduling service: the public entry point of the scheduling engine.

One instance serves one user and owns the reminder repository used for gap
and capacity checks. Every placement is added to that repository, so a
batch of contacts must go through the same instance to avoid
double-booking.
"""

import random
import uuid
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from typing import Any

from checkin.config import settings
from checkin.features.scheduling.constants import (
    AFTERNOON_HOUR,
    DAY_NAMES,
    GAP_SCAN_ATTEMPTS,
    PRIORITY_FLEXIBILITY,
    SLOTS_FILLED_MESSAGE,
    SLOTS_FILLED_OPTIONS,
    SLOTS_FILLED_STATUS,
    TIME_SLOT_INTERVAL,
    TOP_SLOT_CANDIDATES,
    WORKING_DAYS_PER_WEEK,
)
from checkin.features.scheduling.domain.errors import (
    InvalidDateError,
    NoSlotAvailableError,
    SchedulingError,
)
from checkin.features.scheduling.domain.models import (
    GapValidation,
    Reminder,
    ReminderStatus,
    ReminderType,
    SlotsFilledDetails,
    SlotsFilledResponse,
    parse_instant,
)
from checkin.features.scheduling.domain.preferences import Contact, SchedulingPreferences
from checkin.features.scheduling.repository.collaborators import Clock, NotificationScheduler
from checkin.features.scheduling.repository.reminder_repository import (
    InMemoryReminderRepository,
    ReminderRepository,
)
from checkin.features.scheduling.services.blocking_policy import BlockingPolicy
from checkin.features.scheduling.services.conflict_resolver import ConflictResolver
from checkin.features.scheduling.services.gap_policy import GapPolicy
from checkin.features.scheduling.services.preliminary_date import (
    calculate_preliminary_date,
    day_bounds,
    local_at,
    minutes_of_day,
    timezone_or_default,
)
from checkin.features.scheduling.services.scheduling_history import SchedulingHistory
from checkin.features.scheduling.services.slot_search import SlotSearch, floor_to_slot, slot_capacity
from checkin.features.scheduling.services.time_preferences import TimePreferenceResolver
from checkin.infrastructure.observability.logging import get_logger, log_scheduling_outcome

logger = get_logger(__name__)


def as_contact(contact: Contact | dict[str, Any] | str) -> Contact:
    if isinstance(contact, Contact):
        return contact
    if isinstance(contact, str):
        return Contact(id=contact)
    return Contact.model_validate(contact)


def format_day(day: date | datetime) -> str:
    """Render a day as "Tuesday, January 9"."""
    return f"{day:%A, %B} {day.day}"


class SchedulingService:
    def __init__(
        self,
        user_preferences: SchedulingPreferences | dict[str, Any] | None = None,
        existing_reminders: ReminderRepository | Iterable[Reminder | dict[str, Any]] | None = None,
        timezone: str | None = None,
        *,
        history: SchedulingHistory | None = None,
        notifier: NotificationScheduler | None = None,
        rng: random.Random | None = None,
        clock: Clock | None = None,
        user_id: str | None = None,
    ):
        if isinstance(user_preferences, SchedulingPreferences):
            self.preferences = user_preferences
        else:
            self.preferences = SchedulingPreferences.model_validate(user_preferences or {})

        if existing_reminders is not None and hasattr(existing_reminders, "list_in_window"):
            self.repository = existing_reminders
        else:
            self.repository = InMemoryReminderRepository(existing_reminders)

        self.tz = timezone_or_default(timezone)
        self.user_id = user_id
        self.history = history
        self.notifier = notifier
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(UTC))

        self.resolver = TimePreferenceResolver(self.preferences)
        self.blocking = BlockingPolicy(self.tz, self.resolver, self.preferences.global_excluded_times)
        self.gaps = GapPolicy(
            self.repository,
            self.preferences.minimum_gap_minutes,
            self.preferences.optimal_gap_minutes,
        )
        self.slot_search = SlotSearch(self.tz, self.resolver, self.blocking, self.gaps, self.repository)
        self.conflict_resolver = ConflictResolver(self.tz, self.resolver, self.slot_search)

    # ------------------------------------------------------------------
    # Building blocks, exposed for callers and the snooze handler
    # ------------------------------------------------------------------

    def calculate_preliminary_date(self, last_contact_date: datetime | str, frequency: str) -> datetime:
        return calculate_preliminary_date(last_contact_date, frequency, self.tz)

    def is_time_blocked(self, instant: datetime, contact: Contact | dict[str, Any] | str) -> bool:
        return self.blocking.is_blocked(instant, as_contact(contact))

    def has_time_conflict(self, instant: datetime, exclude_id: str | None = None) -> bool:
        return self.gaps.has_conflict(instant, exclude_id=exclude_id)

    def find_available_time_slot(
        self, instant: datetime, contact: Contact | dict[str, Any] | str
    ) -> datetime:
        return self.slot_search.find_available_slot(instant, as_contact(contact))

    def resolve_conflict(
        self, instant: datetime, contact: Contact | dict[str, Any] | str, attempts: int = 0
    ) -> datetime:
        return self.conflict_resolver.resolve_conflict(instant, as_contact(contact), attempts)

    def adjust_for_priority_flexibility(
        self, instant: datetime, priority: str = "normal"
    ) -> tuple[datetime, datetime]:
        """Earliest and latest instants a contact of ``priority`` may drift to."""
        flexibility = PRIORITY_FLEXIBILITY.get(str(priority).lower(), PRIORITY_FLEXIBILITY["normal"])
        local = instant.astimezone(self.tz)
        return local - timedelta(days=flexibility), local + timedelta(days=flexibility)

    def adjust_to_preferred_day(
        self, instant: datetime, contact: Contact | dict[str, Any] | str
    ) -> datetime:
        """Move ``instant`` forward to the next preferred weekday, keeping wall time."""
        preferred = self.resolver.resolve(as_contact(contact)).preferred_days
        local = instant.astimezone(self.tz)
        if not preferred:
            return local
        for offset in range(7):
            day = local.date() + timedelta(days=offset)
            if DAY_NAMES[day.weekday()] in preferred:
                return local_at(day, minutes_of_day(local), self.tz)
        return local

    def find_next_available_day(
        self, instant: datetime, contact: Contact | dict[str, Any] | str
    ) -> str | None:
        """First preferred day of the following week with free slots, as "Tuesday, January 9"."""
        preferences = self.resolver.resolve(as_contact(contact))
        window = preferences.active_hours
        capacity = slot_capacity(preferences)
        local = instant.astimezone(self.tz)

        for offset in range(1, 8):
            day = local.date() + timedelta(days=offset)
            if preferences.preferred_days and DAY_NAMES[day.weekday()] not in preferences.preferred_days:
                continue
            booked = self.repository.list_in_window(
                local_at(day, window.start.minutes, self.tz),
                local_at(day, window.end.minutes, self.tz) + timedelta(minutes=1),
            )
            if len(booked) < capacity:
                return format_day(day)
        return None

    # ------------------------------------------------------------------
    # Gap helpers
    # ------------------------------------------------------------------

    def validate_gap_requirements(self, instant: datetime) -> GapValidation:
        return self.gaps.validate(instant)

    def find_next_available_time_with_gap(self, base_time: datetime) -> datetime:
        current = base_time.astimezone(self.tz)
        for _ in range(GAP_SCAN_ATTEMPTS):
            if self.gaps.validate(current).is_valid:
                return current
            current += timedelta(minutes=TIME_SLOT_INTERVAL)
        raise NoSlotAvailableError(
            f"No gap-respecting time within {GAP_SCAN_ATTEMPTS} slots of {base_time.isoformat()}"
        )

    def adjust_time_for_gaps(
        self, instant: datetime, contact: Contact | dict[str, Any] | str
    ) -> datetime:
        contact = as_contact(contact)
        if self.gaps.validate(instant).is_valid:
            return instant
        adjusted = self.find_next_available_time_with_gap(instant)
        if self.blocking.is_blocked(adjusted, contact):
            return self.slot_search.find_available_slot(adjusted, contact)
        return adjusted

    # ------------------------------------------------------------------
    # Public scheduling operations
    # ------------------------------------------------------------------

    def _slots_filled(self, target: datetime, contact: Contact) -> SlotsFilledResponse:
        window = self.resolver.resolve(contact).active_hours
        response = SlotsFilledResponse(
            status=SLOTS_FILLED_STATUS,
            message=SLOTS_FILLED_MESSAGE,
            options=list(SLOTS_FILLED_OPTIONS),
            details=SlotsFilledDetails(
                date=format_day(target),
                working_hours=str(window),
                next_available_day=self.find_next_available_day(target, contact),
            ),
        )
        log_scheduling_outcome(
            "schedule_reminder",
            contact.id,
            "slots_filled",
            date=response.details.date,
            next_available_day=response.details.next_available_day,
        )
        return response

    def _target_day(self, preliminary: datetime, contact: Contact, frequency: str) -> datetime:
        preferred = self.resolver.resolve(contact).preferred_days
        if not preferred or str(frequency).lower() == "daily":
            return preliminary

        for offset in range(7):
            day = preliminary.date() + timedelta(days=offset)
            if DAY_NAMES[day.weekday()] not in preferred:
                continue
            if not self.repository.list_in_window(*day_bounds(day, self.tz)):
                return local_at(day, minutes_of_day(preliminary), self.tz)

        return self.adjust_to_preferred_day(preliminary, contact)

    def _week_is_full(self, target: datetime, contact: Contact) -> bool:
        preferences = self.resolver.resolve(contact)
        start, _ = day_bounds(target.date(), self.tz)
        _, end = day_bounds(target.date() + timedelta(days=7), self.tz)
        used = set()
        for reminder in self.repository.list_in_window(start, end):
            local = floor_to_slot(reminder.scheduled_time.astimezone(self.tz))
            used.add((local.date(), local.hour, local.minute))
        return len(used) >= slot_capacity(preferences) * WORKING_DAYS_PER_WEEK

    def _jittered(self, slot: datetime, contact: Contact) -> datetime:
        window = self.resolver.resolve(contact).active_hours
        jittered = slot + timedelta(minutes=self.rng.randrange(TIME_SLOT_INTERVAL))
        if (
            minutes_of_day(jittered) > window.end.minutes
            or jittered.date() != slot.date()
            or not self.slot_search.is_available(jittered, contact)
        ):
            return slot
        return jittered

    def _new_reminder(
        self, contact: Contact, scheduled_time: datetime, type: ReminderType = ReminderType.SCHEDULED
    ) -> Reminder:
        now = self.clock()
        return Reminder(
            id=str(uuid.uuid4()),
            contact_id=contact.id,
            user_id=contact.user_id or self.user_id,
            scheduled_time=scheduled_time,
            type=type,
            status=ReminderStatus.PENDING,
            created_at=now,
            updated_at=now,
            contact_name=contact.display_name,
        )

    def schedule_reminder(
        self,
        contact: Contact | dict[str, Any] | str,
        last_contact_date: datetime | str,
        frequency: str,
    ) -> Reminder | SlotsFilledResponse:
        """
        Place the next reminder for a contact.

        Returns:
            The new Reminder (already added to the repository), or a
            SlotsFilledResponse when the target day or week is fully booked

        Raises:
            InvalidFrequencyError, MaxAttemptsExceededError
        """
        contact = as_contact(contact)
        try:
            preliminary = self.calculate_preliminary_date(last_contact_date, frequency)
            target = self._target_day(preliminary, contact, frequency)

            if self._week_is_full(target, contact):
                return self._slots_filled(target, contact)

            candidates = self.slot_search.candidate_slots(target.date(), contact)
            if not candidates:
                preferences = self.resolver.resolve(contact)
                if self.slot_search.is_day_saturated(target.date(), preferences):
                    return self._slots_filled(target, contact)

                resolved = self.resolve_conflict(target, contact)
                reminder = self._new_reminder(contact, resolved)
                reminder.flexibility_used = True
                reminder.score = self.slot_search.score_slot(resolved, contact)
            else:
                chosen = self.rng.choice(candidates[:TOP_SLOT_CANDIDATES])
                scheduled = self._jittered(chosen.scheduled_time, contact)
                reminder = self._new_reminder(contact, scheduled)
                reminder.score = chosen.score
                reminder.flexibility_used = scheduled != preliminary

            reminder.frequency = str(frequency).lower()
            self.repository.add(reminder)
        except SchedulingError as e:
            log_scheduling_outcome("schedule_reminder", contact.id, "failed", error=str(e))
            raise

        log_scheduling_outcome(
            "schedule_reminder",
            contact.id,
            "scheduled",
            scheduled_time=reminder.scheduled_time.isoformat(),
            score=reminder.score,
            flexibility_used=reminder.flexibility_used,
        )
        return reminder

    async def schedule_recurring_reminder(
        self,
        contact: Contact | dict[str, Any] | str,
        last_contact_date: datetime | str,
        frequency: str,
    ) -> Reminder | SlotsFilledResponse:
        contact = as_contact(contact)
        result = self.schedule_reminder(contact, last_contact_date, frequency)
        if isinstance(result, SlotsFilledResponse):
            return result

        result.frequency = str(frequency).lower()
        if self.history is None:
            return result

        try:
            analysis = await self.history.analyze_contact_patterns(
                contact.id, settings.PATTERN_ANALYSIS_WINDOW_DAYS
            )
            if analysis is None:
                return result

            max_age = timedelta(days=settings.PATTERN_MAX_AGE_DAYS)
            if analysis.last_updated is None or self.clock() - analysis.last_updated > max_age:
                logger.info("Ignoring stale pattern data", contact_id=contact.id)
                return result

            if analysis.confidence < settings.PATTERN_MIN_CONFIDENCE:
                return result

            base_local = result.scheduled_time.astimezone(self.tz)
            suggested = await self.history.suggest_optimal_time(contact.id, base_local, "recurring")
            if self.blocking.is_blocked(suggested, contact) or self.gaps.has_conflict(
                suggested, exclude_id=result.id
            ):
                logger.debug(
                    "Pattern suggestion rejected", contact_id=contact.id, suggested=suggested.isoformat()
                )
                return result

            result.scheduled_time = suggested.astimezone(self.tz)
            result.pattern_adjusted = True
            result.confidence = analysis.confidence
            result.recurring_next_date = result.scheduled_time.isoformat()
            self.repository.replace(result)
        except Exception as e:
            # Pattern adjustment is best effort; the base placement stands
            logger.warning("Pattern lookup failed, using base schedule", contact_id=contact.id, error=str(e))
            result.pattern_adjusted = False
            return result

        log_scheduling_outcome(
            "schedule_recurring_reminder",
            contact.id,
            "pattern_adjusted",
            scheduled_time=result.scheduled_time.isoformat(),
            confidence=result.confidence,
        )
        return result

    def schedule_custom_date(
        self, contact: Contact | dict[str, Any] | str, custom_date: datetime | str
    ) -> Reminder:
        """
        Schedule a reminder on a caller-chosen date.

        Outside active hours the reminder moves to 14:00 the same day, or to
        the nearest free slot when 14:00 is unavailable.
        """
        contact = as_contact(contact)
        requested = parse_instant(custom_date)
        if requested is None:
            log_scheduling_outcome("schedule_custom_date", contact.id, "failed", error="invalid date")
            raise InvalidDateError(f"Invalid custom date: {custom_date!r}", contact_id=contact.id)

        local = requested.astimezone(self.tz)
        window = self.resolver.resolve(contact).active_hours
        try:
            if not window.contains(minutes_of_day(local)):
                afternoon = local_at(local.date(), AFTERNOON_HOUR * 60, self.tz)
                if window.contains(AFTERNOON_HOUR * 60) and self.slot_search.is_available(
                    afternoon, contact
                ):
                    scheduled = afternoon
                else:
                    scheduled = self.slot_search.find_available_slot(
                        local_at(local.date(), window.start.minutes, self.tz), contact
                    )
            elif self.slot_search.is_available(local, contact):
                scheduled = local
            else:
                scheduled = self.slot_search.find_available_slot(local, contact)
        except SchedulingError as e:
            log_scheduling_outcome("schedule_custom_date", contact.id, "failed", error=str(e))
            raise

        reminder = self._new_reminder(contact, scheduled, ReminderType.CUSTOM_DATE)
        reminder.flexibility_used = scheduled != local
        self.repository.add(reminder)

        log_scheduling_outcome(
            "schedule_custom_date",
            contact.id,
            "scheduled",
            scheduled_time=scheduled.isoformat(),
            flexibility_used=reminder.flexibility_used,
        )
        return reminder

    async def schedule_notification_for_reminder(self, reminder: Reminder) -> None:
        if self.notifier is None:
            logger.info("No notifier configured, skipping notification", reminder_id=reminder.id)
            return
        try:
            await self.notifier.schedule_notification_for_reminder(reminder)
        except Exception as e:
            logger.error("Failed to schedule notification", reminder_id=reminder.id, error=str(e))
            raise
