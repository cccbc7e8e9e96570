"""
Snooze and skip handling for check-in reminders.

Translates a user's snooze choice into a new reminder time (searched through
the SchedulingService), writes the outcome back through the contact and
reminder stores, records it in the scheduling history, and re-registers the
notification.
"""

import random
from datetime import UTC, datetime, time, timedelta
from typing import Any

from checkin.config import settings
from checkin.features.scheduling.constants import (
    CONTACT_NOW,
    LATER_TODAY_DEFAULT_DELAY,
    LATER_TODAY_DELAYS,
    LATER_TODAY_FALLBACK_END_HOUR,
    LATER_TODAY_FALLBACK_START_HOUR,
    RESCHEDULE,
    SNOOZE_INDICATORS,
    SNOOZE_LIMIT_MESSAGES,
    SNOOZE_OPTION_IDS,
    SNOOZE_OPTIONS,
)
from checkin.features.scheduling.domain.errors import InvalidSnoozeOptionError
from checkin.features.scheduling.domain.models import (
    Increment,
    Reminder,
    ReminderStatus,
    ReminderType,
    SnoozeOption,
    SnoozeStats,
)
from checkin.features.scheduling.domain.preferences import Contact
from checkin.features.scheduling.repository.collaborators import (
    Clock,
    ContactStore,
    NotificationScheduler,
    PreferencesStore,
    ReminderStore,
)
from checkin.features.scheduling.services.preliminary_date import timezone_or_default
from checkin.features.scheduling.services.scheduling_history import SchedulingHistory
from checkin.features.scheduling.services.scheduling_service import SchedulingService
from checkin.infrastructure.observability.logging import get_logger, log_scheduling_outcome

logger = get_logger(__name__)


def compute_snooze_stats(reminder: dict[str, Any] | None) -> SnoozeStats:
    """Remaining-snooze summary for a stored reminder document."""
    reminder = reminder or {}
    frequency = reminder.get("frequency") or "default"
    snooze_count = reminder.get("snooze_count") or len(reminder.get("snooze_history") or [])
    total = settings.MAX_SNOOZE_ATTEMPTS
    remaining = max(0, total - int(snooze_count))

    if remaining > 1:
        message = SNOOZE_LIMIT_MESSAGES["REMAINING"].format(remaining=remaining)
        indicator = SNOOZE_INDICATORS["NORMAL"]
    elif remaining == 1:
        message = SNOOZE_LIMIT_MESSAGES["LAST_REMAINING"]
        indicator = SNOOZE_INDICATORS["WARNING"]
    else:
        message = SNOOZE_LIMIT_MESSAGES["MAX_REACHED"]
        indicator = SNOOZE_INDICATORS["CRITICAL"]

    frequency_specific = {
        "daily": SNOOZE_LIMIT_MESSAGES["DAILY_LIMIT"],
        "weekly": SNOOZE_LIMIT_MESSAGES["WEEKLY_LIMIT"],
    }.get(frequency)

    return SnoozeStats(
        remaining=remaining,
        total=total,
        is_last=remaining == 1,
        is_exhausted=remaining == 0,
        message=message,
        indicator=indicator,
        frequency_specific=frequency_specific,
    )


def later_today_delay_range(hour: int) -> tuple[int, int]:
    for first, last, low, high in LATER_TODAY_DELAYS:
        if first <= hour <= last:
            return low, high
    return LATER_TODAY_DEFAULT_DELAY


def _option(option_id: str, stats: SnoozeStats | None = None, is_exhausted: bool = False) -> SnoozeOption:
    return SnoozeOption(id=option_id, stats=stats, is_exhausted=is_exhausted, **SNOOZE_OPTIONS[option_id])


class SnoozeHandler:
    def __init__(
        self,
        user_id: str,
        timezone: str | None = None,
        *,
        preferences_store: PreferencesStore,
        reminder_store: ReminderStore,
        contact_store: ContactStore,
        history: SchedulingHistory,
        notifier: NotificationScheduler | None = None,
        rng: random.Random | None = None,
        clock: Clock | None = None,
    ):
        self.user_id = user_id
        self.tz = timezone_or_default(timezone)
        self.timezone = timezone
        self.preferences_store = preferences_store
        self.reminder_store = reminder_store
        self.contact_store = contact_store
        self.history = history
        self.notifier = notifier
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.scheduling_service: SchedulingService | None = None

    async def get_scheduling_service(self) -> SchedulingService:
        if self.scheduling_service is not None:
            return self.scheduling_service

        user_preferences = await self.preferences_store.get_user_preferences(self.user_id)
        if not user_preferences:
            logger.info("No stored preferences, using defaults", user_id=self.user_id)
        active_reminders = await self.reminder_store.get_active_reminders(self.user_id)

        self.scheduling_service = SchedulingService(
            user_preferences or {},
            active_reminders or [],
            self.timezone,
            history=self.history,
            notifier=self.notifier,
            rng=self.rng,
            clock=self.clock,
            user_id=self.user_id,
        )
        logger.debug(
            "Scheduling service initialized for snoozes",
            user_id=self.user_id,
            reminders=len(active_reminders or []),
        )
        return self.scheduling_service

    def _local(self, current_time: datetime | None) -> datetime:
        if current_time is None:
            return self.clock().astimezone(self.tz)
        if current_time.tzinfo is None:
            # A naive reading is wall-clock time in the user's zone
            return current_time.replace(tzinfo=self.tz)
        return current_time.astimezone(self.tz)

    async def _contact(self, contact_id: str) -> Contact:
        record = await self.contact_store.get_contact_by_id(contact_id)
        if not record:
            return Contact(id=contact_id, user_id=self.user_id)
        return Contact.model_validate({**record, "id": contact_id})

    async def _apply_snooze(
        self,
        contact: Contact,
        option_id: str,
        current: datetime,
        scheduled: datetime,
        reminder_id: str | None,
        reminder_type: ReminderType,
    ) -> datetime:
        if reminder_id:
            await self.reminder_store.update_reminder(
                reminder_id,
                {
                    "scheduled_time": scheduled,
                    "status": ReminderStatus.SNOOZED.value,
                    "snoozed": True,
                    "snooze_count": Increment(1),
                    "updated_at": self.clock(),
                },
            )

        await self.contact_store.update_contact_scheduling(
            contact.id,
            {
                "custom_next_date": scheduled,
                "last_snooze_type": option_id,
                "snooze_count": Increment(1),
                "status": ReminderStatus.SNOOZED.value,
            },
        )

        await self.history.track_snooze(contact.id, current, scheduled, option_id)

        service = await self.get_scheduling_service()
        now = self.clock()
        reminder = Reminder(
            id=reminder_id or contact.id,
            contact_id=contact.id,
            user_id=self.user_id,
            scheduled_time=scheduled,
            type=reminder_type,
            status=ReminderStatus.SNOOZED,
            snoozed=True,
            created_at=now,
            updated_at=now,
            contact_name=contact.display_name,
        )
        # Later snoozes in this session keep their gap from this slot
        service.repository.replace(reminder)
        await service.schedule_notification_for_reminder(reminder)

        log_scheduling_outcome(
            "snooze",
            contact.id,
            "snoozed",
            option=option_id,
            scheduled_time=scheduled.isoformat(),
            reminder_id=reminder_id,
        )
        return scheduled

    async def handle_later_today(
        self,
        contact_id: str,
        current_time: datetime | None = None,
        reminder_type: ReminderType = ReminderType.SCHEDULED,
        reminder_id: str | None = None,
    ) -> datetime:
        """Snooze by a few hours; a slot is always returned, never an error."""
        service = await self.get_scheduling_service()
        contact = await self._contact(contact_id)
        current = self._local(current_time)

        low, high = later_today_delay_range(current.hour)
        proposed = current + timedelta(minutes=self.rng.randint(low, high))

        try:
            scheduled = service.find_available_time_slot(proposed, contact)
        except Exception as e:
            next_day = current.date() + timedelta(days=1)
            window = (LATER_TODAY_FALLBACK_END_HOUR - LATER_TODAY_FALLBACK_START_HOUR) * 60
            scheduled = datetime.combine(
                next_day, time(LATER_TODAY_FALLBACK_START_HOUR), tzinfo=self.tz
            ) + timedelta(minutes=self.rng.randint(0, window))
            logger.warning(
                "Later today slot search failed, using early-morning fallback",
                contact_id=contact_id,
                proposed=proposed.isoformat(),
                fallback=scheduled.isoformat(),
                error=str(e),
            )
            log_scheduling_outcome("handle_later_today", contact_id, "fallback", error=str(e))

        return await self._apply_snooze(
            contact, "later_today", current, scheduled, reminder_id, reminder_type
        )

    async def _snooze_by_days(
        self,
        option_id: str,
        days: int,
        contact_id: str,
        current_time: datetime | None,
        reminder_type: ReminderType,
        reminder_id: str | None,
    ) -> datetime:
        service = await self.get_scheduling_service()
        contact = await self._contact(contact_id)
        current = self._local(current_time)

        # Same wall-clock time, so a DST change in between does not move the hour
        proposed = datetime.combine(
            current.date() + timedelta(days=days), current.time(), tzinfo=self.tz
        )
        scheduled = service.find_available_time_slot(proposed, contact)
        return await self._apply_snooze(contact, option_id, current, scheduled, reminder_id, reminder_type)

    async def handle_tomorrow(
        self,
        contact_id: str,
        current_time: datetime | None = None,
        reminder_type: ReminderType = ReminderType.SCHEDULED,
        reminder_id: str | None = None,
    ) -> datetime:
        return await self._snooze_by_days(
            "tomorrow", 1, contact_id, current_time, reminder_type, reminder_id
        )

    async def handle_next_week(
        self,
        contact_id: str,
        current_time: datetime | None = None,
        reminder_type: ReminderType = ReminderType.SCHEDULED,
        reminder_id: str | None = None,
    ) -> datetime:
        return await self._snooze_by_days(
            "next_week", 7, contact_id, current_time, reminder_type, reminder_id
        )

    async def handle_skip(
        self,
        contact_id: str,
        current_time: datetime | None = None,
        reminder_id: str | None = None,
    ) -> bool:
        current = self._local(current_time)

        if reminder_id:
            await self.reminder_store.update_reminder(
                reminder_id,
                {
                    "status": ReminderStatus.SKIPPED.value,
                    "snoozed": False,
                    "updated_at": self.clock(),
                },
            )

        await self.contact_store.update_contact_scheduling(
            contact_id,
            {
                "status": ReminderStatus.SKIPPED.value,
                "last_snooze_type": "skip",
                "custom_next_date": None,
            },
        )
        await self.history.track_skip(contact_id, current)

        log_scheduling_outcome("handle_skip", contact_id, "skipped", reminder_id=reminder_id)
        return True

    async def handle_snooze(
        self,
        contact_id: str,
        option_id: str,
        current_time: datetime | None = None,
        reminder_type: ReminderType = ReminderType.SCHEDULED,
        reminder_id: str | None = None,
    ) -> datetime | bool:
        if option_id not in SNOOZE_OPTION_IDS:
            raise InvalidSnoozeOptionError(f"Invalid snooze option: {option_id}", contact_id=contact_id)

        if option_id == "later_today":
            return await self.handle_later_today(contact_id, current_time, reminder_type, reminder_id)
        if option_id == "tomorrow":
            return await self.handle_tomorrow(contact_id, current_time, reminder_type, reminder_id)
        if option_id == "next_week":
            return await self.handle_next_week(contact_id, current_time, reminder_type, reminder_id)
        return await self.handle_skip(contact_id, current_time, reminder_id)

    async def get_available_snooze_options(self, reminder_id: str) -> list[SnoozeOption]:
        reminder = await self.reminder_store.get_reminder(reminder_id)
        if not reminder:
            logger.warning("Reminder not found, returning standard options", reminder_id=reminder_id)
            return [_option(option_id) for option_id in SNOOZE_OPTION_IDS]

        stats = compute_snooze_stats(reminder)
        frequency = reminder.get("frequency") or "default"

        if frequency == "daily":
            if not stats.is_exhausted:
                return [_option(option_id, stats) for option_id in ("later_today", "skip")]
            stats.message = SNOOZE_LIMIT_MESSAGES["MAX_REACHED"]
            stats.frequency_specific = SNOOZE_LIMIT_MESSAGES["DAILY_MAX_REACHED"]
            return [_option(option_id, stats, is_exhausted=True) for option_id in (CONTACT_NOW, "skip")]

        if stats.is_exhausted:
            stats.message = SNOOZE_LIMIT_MESSAGES["RECURRING_MAX_REACHED"]
            return [
                _option(option_id, stats, is_exhausted=True)
                for option_id in ("later_today", "tomorrow", "skip", RESCHEDULE)
            ]

        if frequency == "weekly":
            return [_option(option_id, stats) for option_id in ("later_today", "tomorrow", "skip")]

        return [_option(option_id, stats) for option_id in SNOOZE_OPTION_IDS]
