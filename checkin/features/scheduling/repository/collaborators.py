"""
Contracts for the external collaborators the scheduling engine calls.

Implementations live outside this package (document store, push delivery).
All calls are async I/O; errors they raise are propagated to our caller.
"""

from datetime import datetime
from typing import Any, Protocol

from checkin.features.scheduling.domain.models import Reminder


class PreferencesStore(Protocol):
    async def get_user_preferences(self, user_id: str) -> dict[str, Any] | None: ...

    async def update_user_preferences(self, user_id: str, patch: dict[str, Any]) -> None: ...


class ReminderStore(Protocol):
    async def get_active_reminders(self, user_id: str) -> list[Reminder | dict[str, Any]]: ...

    async def add_reminder(self, reminder: Reminder) -> str: ...

    async def update_reminder(self, reminder_id: str, patch: dict[str, Any]) -> None: ...

    async def delete_reminder(self, reminder_id: str) -> None: ...

    async def get_reminder(self, reminder_id: str) -> dict[str, Any] | None: ...

    async def get_contact_reminders(self, contact_id: str, user_id: str) -> list[Reminder]: ...


class ContactStore(Protocol):
    async def get_contact_by_id(self, contact_id: str) -> dict[str, Any] | None: ...

    async def update_contact_scheduling(
        self, contact_id: str, patch: dict[str, Any]
    ) -> dict[str, Any] | None: ...


class NotificationScheduler(Protocol):
    async def schedule_notification_for_reminder(self, reminder: Reminder) -> None: ...


class PatternCache(Protocol):
    async def get_scheduling_history(self, user_id: str) -> dict[str, Any] | None: ...

    async def save_scheduling_history(self, user_id: str, pattern_data: dict[str, Any]) -> None: ...


class Clock(Protocol):
    def __call__(self) -> datetime: ...
