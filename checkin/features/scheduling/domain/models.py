"""
Domain records for the scheduling engine.

These lightweight dataclasses describe reminders and the structured results
returned to callers. They avoid business logic so repositories, services and
callers can share them.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ReminderStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    SNOOZED = "snoozed"
    SKIPPED = "skipped"
    COMPLETED = "completed"


class ReminderType(str, Enum):
    SCHEDULED = "SCHEDULED"
    CUSTOM_DATE = "CUSTOM_DATE"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_instant(value: Any) -> datetime | None:
    """Parse a stored instant (datetime or ISO string); naive values are UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


@dataclass(slots=True)
class Reminder:
    """A scheduled check-in call for one contact."""

    id: str
    contact_id: str
    user_id: str | None
    scheduled_time: datetime
    type: ReminderType = ReminderType.SCHEDULED
    status: ReminderStatus = ReminderStatus.PENDING
    notified: bool = False
    snoozed: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    contact_name: str | None = None

    # Scheduling metadata returned to the caller
    score: float | None = None
    flexibility_used: bool = False
    frequency: str | None = None
    pattern_adjusted: bool = False
    confidence: float | None = None
    recurring_next_date: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Reminder":
        """Build a reminder from a persisted document (camelCase or snake_case)."""
        scheduled = parse_instant(record.get("scheduled_time", record.get("scheduledTime")))
        if scheduled is None:
            raise ValueError(f"Reminder {record.get('id')} has no valid scheduled time")

        return cls(
            id=str(record.get("id", "")),
            contact_id=str(record.get("contact_id", record.get("contactId", ""))),
            user_id=record.get("user_id", record.get("userId")),
            scheduled_time=scheduled,
            type=ReminderType(record.get("type", ReminderType.SCHEDULED.value)),
            status=ReminderStatus(record.get("status", ReminderStatus.PENDING.value)),
            notified=bool(record.get("notified", False)),
            snoozed=bool(record.get("snoozed", False)),
            created_at=parse_instant(record.get("created_at")) or _utcnow(),
            updated_at=parse_instant(record.get("updated_at")) or _utcnow(),
            contact_name=record.get("contact_name", record.get("contactName")),
        )

    def to_record(self) -> dict[str, Any]:
        """Serialise for the reminder store."""
        return {
            "id": self.id,
            "contact_id": self.contact_id,
            "user_id": self.user_id,
            "scheduled_time": self.scheduled_time.isoformat(),
            "type": self.type.value,
            "status": self.status.value,
            "notified": self.notified,
            "snoozed": self.snoozed,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "contact_name": self.contact_name,
        }


@dataclass(slots=True)
class SlotsFilledDetails:
    date: str
    working_hours: str
    next_available_day: str | None


@dataclass(slots=True)
class SlotsFilledResponse:
    """Structured alternate success: the requested period has no free slots."""

    message: str
    options: list[str]
    details: SlotsFilledDetails
    status: str = "SLOTS_FILLED"


@dataclass(slots=True)
class ScoredSlot:
    scheduled_time: datetime
    score: float


@dataclass(slots=True)
class GapValidation:
    is_valid: bool
    conflicts: list[Reminder] = field(default_factory=list)
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class Increment:
    """Atomic counter increment applied by the persistence collaborator."""

    amount: int = 1


@dataclass(slots=True)
class SnoozeStats:
    remaining: int
    total: int
    is_last: bool
    is_exhausted: bool
    message: str
    indicator: str
    frequency_specific: str | None = None


@dataclass(slots=True)
class SnoozeOption:
    id: str
    icon: str
    text: str
    stats: SnoozeStats | None = None
    is_exhausted: bool = False
