"""
Reminder repository used by the scheduling engine for gap and capacity checks.

Each SchedulingService owns one repository. Placements made through a
service are added here so later calls in the same batch see them; keeping
two services consistent with each other is the caller's job.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, Protocol

from checkin.features.scheduling.domain.models import Reminder
from checkin.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ReminderRepository(Protocol):
    def list_in_window(self, start: datetime, end: datetime) -> list[Reminder]: ...

    def list_all(self) -> list[Reminder]: ...

    def add(self, reminder: Reminder) -> None: ...

    def replace(self, reminder: Reminder) -> None: ...

    def remove(self, reminder_id: str) -> bool: ...


class InMemoryReminderRepository:
    """In-process reminder list, ordered by scheduled time."""

    def __init__(self, reminders: Iterable[Reminder | dict[str, Any]] | None = None):
        self._reminders: list[Reminder] = []
        skipped = 0
        for item in reminders or []:
            try:
                reminder = item if isinstance(item, Reminder) else Reminder.from_record(item)
            except ValueError as e:
                skipped += 1
                logger.warning("Skipping unreadable reminder record", error=str(e))
                continue
            self._reminders.append(reminder)
        self._sort()

        if skipped:
            logger.info("Reminder repository loaded", loaded=len(self._reminders), skipped=skipped)

    def _sort(self) -> None:
        self._reminders.sort(key=lambda r: r.scheduled_time.astimezone(UTC))

    def list_in_window(self, start: datetime, end: datetime) -> list[Reminder]:
        """Reminders with start <= scheduled_time < end (absolute time)."""
        start_utc = start.astimezone(UTC)
        end_utc = end.astimezone(UTC)
        return [
            r for r in self._reminders if start_utc <= r.scheduled_time.astimezone(UTC) < end_utc
        ]

    def list_all(self) -> list[Reminder]:
        return list(self._reminders)

    def add(self, reminder: Reminder) -> None:
        self._reminders.append(reminder)
        self._sort()

    def replace(self, reminder: Reminder) -> None:
        """Swap the stored reminder with the same id (appends when unknown)."""
        self._reminders = [r for r in self._reminders if r.id != reminder.id]
        self.add(reminder)

    def remove(self, reminder_id: str) -> bool:
        before = len(self._reminders)
        self._reminders = [r for r in self._reminders if r.id != reminder_id]
        return len(self._reminders) < before

    def __len__(self) -> int:
        return len(self._reminders)
