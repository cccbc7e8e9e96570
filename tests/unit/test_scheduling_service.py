import random
from datetime import datetime, timedelta
from itertools import combinations
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from checkin.config import settings
from checkin.features.scheduling.domain.errors import InvalidDateError, InvalidFrequencyError
from checkin.features.scheduling.domain.models import (
    Reminder,
    ReminderStatus,
    ReminderType,
    SlotsFilledResponse,
)
from checkin.features.scheduling.repository.reminder_repository import InMemoryReminderRepository
from checkin.features.scheduling.services.gap_policy import gap_minutes
from checkin.features.scheduling.services.scheduling_service import SchedulingService

TZ = ZoneInfo("America/New_York")


def at(month: int, day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, month, day, hour, minute, tzinfo=TZ)


def fill_day(month: int, day: int) -> list[Reminder]:
    start = at(month, day, 9)
    return [
        Reminder(
            id=f"r-{month}-{day}-{i}",
            contact_id=f"other-{i}",
            user_id="user-123",
            scheduled_time=start + timedelta(minutes=15 * i),
        )
        for i in range(32)
    ]


class TestScheduleReminder:
    def test_returns_and_records_reminder(self, make_service, contact):
        service = make_service()

        reminder = service.schedule_reminder(contact, at(1, 8, 10), "weekly")

        assert isinstance(reminder, Reminder)
        assert reminder.scheduled_time.date() == at(1, 15, 0).date()
        assert reminder.type == ReminderType.SCHEDULED
        assert reminder.status == ReminderStatus.PENDING
        assert reminder.contact_name == "Ada Lovelace"
        assert reminder.frequency == "weekly"
        assert reminder.score is not None
        assert service.repository.list_all() == [reminder]

    def test_same_seed_gives_same_schedule(self, make_service, contact):
        first = make_service(rng=random.Random(7)).schedule_reminder(contact, at(1, 8, 10), "weekly")
        second = make_service(rng=random.Random(7)).schedule_reminder(contact, at(1, 8, 10), "weekly")

        assert first.scheduled_time == second.scheduled_time

    def test_batch_respects_gap_and_blocking(self, make_service, work_preferences):
        service = make_service(work_preferences)
        contacts = [
            {"id": f"c{i}", "scheduling": {"relationship_type": "work" if i % 2 else None}}
            for i in range(12)
        ]

        results = [service.schedule_reminder(c, at(1, 8, 10), "daily") for c in contacts]

        times = [r.scheduled_time for r in results]
        for first, second in combinations(times, 2):
            assert gap_minutes(first, second) >= 20
        for contact_data, instant in zip(contacts, times):
            assert not service.is_time_blocked(instant, contact_data)
            local = instant.astimezone(TZ)
            assert 9 * 60 <= local.hour * 60 + local.minute <= 17 * 60

    def test_invalid_frequency_propagates(self, make_service, contact):
        with pytest.raises(InvalidFrequencyError):
            make_service().schedule_reminder(contact, at(1, 8, 10), "sometimes")

    def test_full_day_returns_slots_filled(self, make_service, contact):
        service = make_service(reminders=fill_day(1, 15))

        # Daily from Sunday morning lands on the full Monday
        result = service.schedule_reminder(contact, at(1, 14, 10), "daily")

        assert isinstance(result, SlotsFilledResponse)
        assert result.status == "SLOTS_FILLED"
        assert result.message == "This day is fully booked. Would you like to:"
        assert result.options == ["Try the next available day", "Schedule for next week"]
        assert result.details.date == "Monday, January 15"
        assert result.details.working_hours == "09:00 - 17:00"
        assert result.details.next_available_day == "Tuesday, January 16"
        assert len(service.repository) == 32

    def test_full_week_returns_slots_filled(self, make_service, contact):
        reminders = [r for day in range(15, 20) for r in fill_day(1, day)]
        service = make_service(reminders=reminders)

        result = service.schedule_reminder(contact, at(1, 8, 10), "weekly")

        assert isinstance(result, SlotsFilledResponse)
        assert result.details.next_available_day == "Monday, January 22"

    def test_no_candidates_delegates_to_conflict_resolver(self, make_service, contact):
        hourly = [
            Reminder(id=f"r{h}", contact_id="x", user_id="u", scheduled_time=at(1, 15, h))
            for h in range(9, 18)
        ]
        service = make_service({"minimumGapMinutes": 60}, reminders=hourly)

        reminder = service.schedule_reminder(contact, at(1, 14, 10), "daily")

        assert reminder.scheduled_time == at(1, 16, 14)
        assert reminder.flexibility_used is True

    def test_preferred_day_skips_days_with_reminders(self, make_service, contact):
        booked = [Reminder(id="r1", contact_id="x", user_id="u", scheduled_time=at(1, 15, 11))]
        service = make_service(reminders=booked)

        reminder = service.schedule_reminder(contact, at(1, 8, 10), "weekly")

        assert reminder.scheduled_time.date() == at(1, 16, 0).date()


class TestScheduleCustomDate:
    def test_inside_active_hours_is_kept(self, make_service, contact):
        service = make_service()

        reminder = service.schedule_custom_date(contact, at(1, 17, 10))

        assert reminder.scheduled_time == at(1, 17, 10)
        assert reminder.type == ReminderType.CUSTOM_DATE
        assert reminder.flexibility_used is False
        assert len(service.repository) == 1

    def test_iso_string_is_accepted(self, make_service, contact):
        reminder = make_service().schedule_custom_date(contact, "2024-01-17T15:30:00+00:00")

        assert reminder.scheduled_time == at(1, 17, 10, 30)

    def test_outside_active_hours_moves_to_afternoon(self, make_service, contact):
        reminder = make_service().schedule_custom_date(contact, at(1, 17, 20))

        assert reminder.scheduled_time == at(1, 17, 14)
        assert reminder.flexibility_used is True

    def test_outside_hours_with_busy_afternoon_uses_slot_search(self, make_service, contact):
        busy = [Reminder(id="r1", contact_id="x", user_id="u", scheduled_time=at(1, 17, 14))]

        reminder = make_service(reminders=busy).schedule_custom_date(contact, at(1, 17, 20))

        assert reminder.scheduled_time == at(1, 17, 9, 15)

    def test_blocked_time_is_moved(self, make_service, contact):
        reminder = make_service().schedule_custom_date(contact, at(1, 17, 15))

        assert reminder.scheduled_time == at(1, 17, 14, 45)

    @pytest.mark.parametrize("value", ["next tuesday", None, 42])
    def test_invalid_date_raises(self, make_service, contact, value):
        with pytest.raises(InvalidDateError):
            make_service().schedule_custom_date(contact, value)


class TestHelpers:
    def test_priority_flexibility_window(self, make_service):
        earliest, latest = make_service().adjust_for_priority_flexibility(at(1, 15, 10), "LOW")

        assert earliest == at(1, 10, 10)
        assert latest == at(1, 20, 10)

    def test_adjust_to_preferred_day_moves_weekend_to_monday(self, make_service, contact):
        assert make_service().adjust_to_preferred_day(at(1, 13, 10), contact) == at(1, 15, 10)

    def test_find_next_available_day_skips_full_days(self, make_service, contact):
        service = make_service(reminders=fill_day(1, 16))

        assert service.find_next_available_day(at(1, 15, 10), contact) == "Wednesday, January 17"

    def test_find_next_time_with_gap(self, make_service):
        existing = [Reminder(id="r1", contact_id="x", user_id="u", scheduled_time=at(1, 16, 10))]
        service = make_service(reminders=existing)

        assert service.find_next_available_time_with_gap(at(1, 16, 10)) == at(1, 16, 10, 30)
        assert not service.validate_gap_requirements(at(1, 16, 10, 10)).is_valid

    def test_adjust_time_for_gaps_avoids_blocked_result(self, make_service, contact):
        existing = [Reminder(id="r1", contact_id="x", user_id="u", scheduled_time=at(1, 16, 14, 45))]
        service = make_service(reminders=existing)

        assert service.adjust_time_for_gaps(at(1, 16, 14, 50), contact) == at(1, 16, 15, 15)

    def test_accepts_stored_reminder_documents(self, make_service):
        service = make_service(
            reminders=[
                {"id": "r1", "contactId": "x", "scheduledTime": "2024-01-16T15:00:00Z"},
                {"id": "broken", "contactId": "x"},
            ]
        )

        assert len(service.repository) == 1
        assert service.has_time_conflict(at(1, 16, 10, 5))

    def test_shares_an_injected_repository(self, make_service, contact):
        repository = InMemoryReminderRepository()
        first = make_service(reminders=repository)
        second = make_service(reminders=repository)

        placed = first.schedule_custom_date(contact, at(1, 17, 10))

        assert second.has_time_conflict(placed.scheduled_time + timedelta(minutes=5))

    def test_invalid_timezone_falls_back(self, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_TIMEZONE", "Europe/Paris")

        service = SchedulingService({}, [], "Not/AZone")

        assert service.tz == ZoneInfo("Europe/Paris")


class TestNotificationHandOff:
    @pytest.mark.asyncio
    async def test_delegates_to_notifier(self, make_service, contact):
        notifier = AsyncMock()
        service = make_service(notifier=notifier)
        reminder = service.schedule_custom_date(contact, at(1, 17, 10))

        await service.schedule_notification_for_reminder(reminder)

        notifier.schedule_notification_for_reminder.assert_awaited_once_with(reminder)

    @pytest.mark.asyncio
    async def test_missing_notifier_is_a_no_op(self, make_service, contact):
        service = make_service()
        reminder = service.schedule_custom_date(contact, at(1, 17, 10))

        await service.schedule_notification_for_reminder(reminder)

    @pytest.mark.asyncio
    async def test_notifier_errors_propagate(self, make_service, contact):
        notifier = AsyncMock()
        notifier.schedule_notification_for_reminder.side_effect = RuntimeError("push down")
        service = make_service(notifier=notifier)
        reminder = service.schedule_custom_date(contact, at(1, 17, 10))

        with pytest.raises(RuntimeError, match="push down"):
            await service.schedule_notification_for_reminder(reminder)
