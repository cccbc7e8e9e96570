"""
Pattern-history records.

A PatternRecord keeps the raw per-contact attempts and the aggregate tables
derived from them. Aggregates are always rebuilt from the attempts list, so
their counts equal the number of matching attempts.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import Any

from checkin.features.scheduling.constants import DAY_NAMES
from checkin.features.scheduling.domain.models import parse_instant


@dataclass(slots=True)
class PatternAttempt:
    timestamp: datetime
    type: str
    hour_of_day: int
    weekday: str
    success: bool

    @classmethod
    def at(
        cls, timestamp: datetime, type: str, success: bool, tz: tzinfo | None = None
    ) -> "PatternAttempt":
        """Bucket ``timestamp`` by hour and weekday in ``tz`` (naive values are UTC)."""
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        local = timestamp.astimezone(tz) if tz is not None else timestamp
        return cls(
            timestamp=timestamp,
            type=type,
            hour_of_day=local.hour,
            weekday=DAY_NAMES[local.weekday()],
            success=bool(success),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "type": self.type,
            "hour_of_day": self.hour_of_day,
            "weekday": self.weekday,
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PatternAttempt":
        timestamp = parse_instant(data["timestamp"])
        return cls(
            timestamp=timestamp,
            type=data.get("type", "unknown"),
            hour_of_day=int(data.get("hour_of_day", timestamp.hour)),
            weekday=data.get("weekday", DAY_NAMES[timestamp.weekday()]),
            success=bool(data.get("success", False)),
        )


@dataclass(slots=True)
class BucketStats:
    attempts: int = 0
    successes: int = 0

    @property
    def success_rate(self) -> float:
        return self.successes / self.attempts if self.attempts else 0.0


@dataclass(slots=True)
class AggregatedStats:
    by_hour: dict[int, BucketStats] = field(default_factory=dict)
    by_day: dict[str, BucketStats] = field(default_factory=dict)
    by_type: dict[str, BucketStats] = field(default_factory=dict)

    @classmethod
    def from_attempts(cls, attempts: list[PatternAttempt]) -> "AggregatedStats":
        stats = cls()
        for attempt in attempts:
            for table, key in (
                (stats.by_hour, attempt.hour_of_day),
                (stats.by_day, attempt.weekday),
                (stats.by_type, attempt.type),
            ):
                bucket = table.setdefault(key, BucketStats())
                bucket.attempts += 1
                if attempt.success:
                    bucket.successes += 1
        return stats


@dataclass(slots=True)
class PatternRecord:
    """Per-contact rescheduling history."""

    attempts: list[PatternAttempt] = field(default_factory=list)
    aggregated_stats: AggregatedStats = field(default_factory=AggregatedStats)

    def record(self, attempt: PatternAttempt) -> None:
        # One attempt per timestamp; a repeat replaces the earlier entry
        self.attempts = [a for a in self.attempts if a.timestamp != attempt.timestamp]
        self.attempts.append(attempt)
        self.rebuild()

    def rebuild(self) -> None:
        self.aggregated_stats = AggregatedStats.from_attempts(self.attempts)

    @property
    def last_updated(self) -> datetime | None:
        if not self.attempts:
            return None
        return max(a.timestamp for a in self.attempts)

    def to_dict(self) -> dict[str, Any]:
        return {"attempts": [a.to_dict() for a in self.attempts]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PatternRecord":
        record = cls()
        for item in data.get("attempts", []):
            record.record(PatternAttempt.from_dict(item))
        return record


@dataclass(slots=True)
class PatternAnalysis:
    """Result of analysing one contact's recent attempts."""

    optimal_times: list[tuple[int, float]]
    optimal_days: list[tuple[str, float]]
    success_rates: dict[str, dict[Any, float]]
    recent_attempts: int
    confidence: float
    last_updated: datetime | None = None


@dataclass(slots=True)
class PatternData:
    """Everything the history service persists for one user."""

    time_slots: dict[str, float] = field(default_factory=dict)
    days_of_week: dict[str, float] = field(default_factory=dict)
    snooze_patterns: list[dict[str, Any]] = field(default_factory=list)
    skip_patterns: list[dict[str, Any]] = field(default_factory=list)
    successful_attempts: list[dict[str, Any]] = field(default_factory=list)
    contact_patterns: dict[str, PatternRecord] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_slots": dict(self.time_slots),
            "days_of_week": dict(self.days_of_week),
            "snooze_patterns": list(self.snooze_patterns),
            "skip_patterns": list(self.skip_patterns),
            "successful_attempts": list(self.successful_attempts),
            "contact_patterns": {
                contact_id: record.to_dict() for contact_id, record in self.contact_patterns.items()
            },
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PatternData":
        return cls(
            time_slots={str(k): float(v) for k, v in data.get("time_slots", {}).items()},
            days_of_week={str(k): float(v) for k, v in data.get("days_of_week", {}).items()},
            snooze_patterns=list(data.get("snooze_patterns", [])),
            skip_patterns=list(data.get("skip_patterns", [])),
            successful_attempts=list(data.get("successful_attempts", [])),
            contact_patterns={
                str(contact_id): PatternRecord.from_dict(record)
                for contact_id, record in data.get("contact_patterns", {}).items()
            },
            last_updated=parse_instant(data.get("last_updated")) or datetime.now(UTC),
        )
