"""
Spacing rules between a candidate instant and already-scheduled reminders.

Distances are absolute elapsed minutes (floored), computed in UTC so zone
and DST differences between stored reminders never matter.
"""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from checkin.features.scheduling.domain.models import GapValidation, Reminder
from checkin.features.scheduling.repository.reminder_repository import ReminderRepository


def gap_minutes(first: datetime, second: datetime) -> int:
    delta = abs((first.astimezone(UTC) - second.astimezone(UTC)).total_seconds())
    return int(delta // 60)


def has_conflict(
    instant: datetime, existing: Iterable[Reminder], minimum_gap_minutes: int
) -> bool:
    """True when any reminder sits strictly closer than the minimum gap."""
    return any(
        gap_minutes(instant, reminder.scheduled_time) < minimum_gap_minutes for reminder in existing
    )


class GapPolicy:
    def __init__(
        self,
        repository: ReminderRepository,
        minimum_gap_minutes: int,
        optimal_gap_minutes: int,
    ):
        self.repository = repository
        self.minimum_gap_minutes = minimum_gap_minutes
        self.optimal_gap_minutes = optimal_gap_minutes

    def _neighbours(self, instant: datetime, exclude_id: str | None = None) -> list[Reminder]:
        window = timedelta(minutes=self.minimum_gap_minutes)
        nearby = self.repository.list_in_window(instant - window, instant + window)
        return [r for r in nearby if r.id != exclude_id] if exclude_id else nearby

    def has_conflict(self, instant: datetime, exclude_id: str | None = None) -> bool:
        return has_conflict(instant, self._neighbours(instant, exclude_id), self.minimum_gap_minutes)

    def nearest_gap(self, instant: datetime) -> int | None:
        """Minutes to the closest scheduled reminder, None when there are none."""
        reminders = self.repository.list_all()
        if not reminders:
            return None
        return min(gap_minutes(instant, r.scheduled_time) for r in reminders)

    def distance_score(self, instant: datetime) -> float:
        """Map the nearest gap from [minimum, optimal] onto [0, 1]."""
        nearest = self.nearest_gap(instant)
        if nearest is None:
            return 1.0
        if nearest < self.minimum_gap_minutes:
            return 0.0
        if nearest >= self.optimal_gap_minutes or self.optimal_gap_minutes <= self.minimum_gap_minutes:
            return 1.0
        span = self.optimal_gap_minutes - self.minimum_gap_minutes
        return (nearest - self.minimum_gap_minutes) / span

    def validate(self, instant: datetime) -> GapValidation:
        conflicts = [
            r
            for r in self._neighbours(instant)
            if gap_minutes(instant, r.scheduled_time) < self.minimum_gap_minutes
        ]
        if conflicts:
            return GapValidation(
                is_valid=False,
                conflicts=conflicts,
                reason=f"Too close to {len(conflicts)} existing reminder(s)",
            )
        return GapValidation(is_valid=True)
