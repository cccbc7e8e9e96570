import random
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from checkin.features.scheduling.domain.models import Increment, Reminder
from checkin.features.scheduling.domain.preferences import Contact
from checkin.features.scheduling.repository.pattern_cache import InMemoryPatternCache
from checkin.features.scheduling.services.scheduling_history import SchedulingHistory
from checkin.features.scheduling.services.scheduling_service import SchedulingService

TZ_NAME = "America/New_York"
TZ = ZoneInfo(TZ_NAME)


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        self.store[key] = value
        self.ttls[key] = ttl_s
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None


class FakeContactStore:
    def __init__(self, contacts: dict[str, dict[str, Any]] | None = None):
        self.contacts = contacts or {}
        self.updates: list[tuple[str, dict[str, Any]]] = []

    async def get_contact_by_id(self, contact_id: str) -> dict[str, Any] | None:
        return self.contacts.get(contact_id)

    async def update_contact_scheduling(self, contact_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        self.updates.append((contact_id, patch))
        contact = self.contacts.setdefault(contact_id, {"id": contact_id, "scheduling": {}})
        scheduling = contact.setdefault("scheduling", {})
        for key, value in patch.items():
            if isinstance(value, Increment):
                scheduling[key] = scheduling.get(key, 0) + value.amount
            else:
                scheduling[key] = value
        return contact


class FakeReminderStore:
    def __init__(self, reminders: dict[str, dict[str, Any]] | None = None):
        self.reminders = reminders or {}
        self.updates: list[tuple[str, dict[str, Any]]] = []

    async def get_active_reminders(self, user_id: str) -> list[dict[str, Any]]:
        return [r for r in self.reminders.values() if r.get("scheduled_time")]

    async def add_reminder(self, reminder: Reminder) -> str:
        self.reminders[reminder.id] = reminder.to_record()
        return reminder.id

    async def update_reminder(self, reminder_id: str, patch: dict[str, Any]) -> None:
        self.updates.append((reminder_id, patch))
        stored = self.reminders.setdefault(reminder_id, {"id": reminder_id})
        for key, value in patch.items():
            if isinstance(value, Increment):
                stored[key] = stored.get(key, 0) + value.amount
            else:
                stored[key] = value

    async def delete_reminder(self, reminder_id: str) -> None:
        self.reminders.pop(reminder_id, None)

    async def get_reminder(self, reminder_id: str) -> dict[str, Any] | None:
        return self.reminders.get(reminder_id)

    async def get_contact_reminders(self, contact_id: str, user_id: str) -> list[Reminder]:
        return [
            Reminder.from_record(r)
            for r in self.reminders.values()
            if r.get("contact_id") == contact_id and r.get("scheduled_time")
        ]


class FakePreferencesStore:
    def __init__(self, preferences: dict[str, Any] | None = None):
        self.preferences = preferences

    async def get_user_preferences(self, user_id: str) -> dict[str, Any] | None:
        return self.preferences

    async def update_user_preferences(self, user_id: str, patch: dict[str, Any]) -> None:
        self.preferences = {**(self.preferences or {}), **patch}


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def contact():
    return Contact(id="contact-1", user_id="user-123", first_name="Ada", last_name="Lovelace")


@pytest.fixture
def work_preferences():
    return {
        "scheduling_preferences": {"minimumGapMinutes": 20, "optimalGapMinutes": 1440},
        "relationship_types": {
            "work": {
                "active_hours": {"start": "09:00", "end": "17:00"},
                "preferred_days": ["monday", "tuesday", "wednesday", "thursday", "friday"],
                "excluded_times": [
                    {"days": ["monday", "wednesday", "friday"], "start": "12:00", "end": "13:00"}
                ],
            }
        },
    }


@pytest.fixture
def make_service(rng, clock):
    def _make(preferences=None, reminders=None, **kwargs):
        kwargs.setdefault("rng", rng)
        kwargs.setdefault("clock", clock)
        if reminders is None:
            reminders = []
        return SchedulingService(preferences or {}, reminders, TZ_NAME, **kwargs)

    return _make


@pytest.fixture
def history(clock):
    return SchedulingHistory("user-123", InMemoryPatternCache(), clock=clock, timezone=TZ_NAME)


@pytest.fixture
def contact_store():
    return FakeContactStore(
        {
            "contact-1": {
                "id": "contact-1",
                "user_id": "user-123",
                "first_name": "Ada",
                "last_name": "Lovelace",
                "scheduling": {"frequency": "weekly", "snooze_count": 0},
            }
        }
    )


@pytest.fixture
def reminder_store():
    return FakeReminderStore()


@pytest.fixture
def preferences_store():
    return FakePreferencesStore()
