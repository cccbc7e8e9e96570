"""
Scheduling history: the per-user pattern store.

Tracks how reminders were acted on (called, snoozed, skipped) to weight
hours and weekdays, and keeps per-contact attempt histories used to
suggest better times for recurring reminders. The whole table is loaded
from the pattern cache once per instance and saved after every mutation.
"""

import math
from datetime import UTC, datetime, time, timedelta
from typing import Any

from checkin.config import settings
from checkin.features.scheduling.constants import (
    DAY_NAMES,
    PATTERN_WEIGHTS,
    RECENT_EVENT_DAYS,
    SUGGESTION_FALLBACK_HOURS,
)
from checkin.features.scheduling.domain.models import parse_instant
from checkin.features.scheduling.domain.patterns import (
    BucketStats,
    PatternAnalysis,
    PatternAttempt,
    PatternData,
    PatternRecord,
)
from checkin.features.scheduling.repository.collaborators import Clock, PatternCache
from checkin.features.scheduling.services.preliminary_date import timezone_or_default
from checkin.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

OPTIMAL_RESULTS = 3
BEST_TIME_SLOTS = 5

# (name, first hour, end hour exclusive)
TIME_PERIODS = (
    ("morning", 6, 12),
    ("afternoon", 12, 17),
    ("evening", 17, 22),
)


def _rates(table: dict[Any, BucketStats]) -> dict[Any, float]:
    return {key: bucket.success_rate for key, bucket in table.items()}


def _ranked(rates: dict[Any, float]) -> list[tuple[Any, float]]:
    return sorted(rates.items(), key=lambda item: item[1], reverse=True)[:OPTIMAL_RESULTS]


class SchedulingHistory:
    def __init__(
        self,
        user_id: str,
        cache: PatternCache,
        clock: Clock | None = None,
        timezone: str | None = None,
    ):
        self.user_id = user_id
        self.cache = cache
        self.tz = timezone_or_default(timezone)
        self.clock = clock or (lambda: datetime.now(UTC))
        self.pattern_data: PatternData | None = None

    async def load(self) -> PatternData:
        cached = await self.cache.get_scheduling_history(self.user_id)
        if cached:
            self.pattern_data = PatternData.from_dict(cached)
            logger.debug(
                "Scheduling history loaded",
                user_id=self.user_id,
                contacts=len(self.pattern_data.contact_patterns),
            )
            return self.pattern_data

        self.pattern_data = PatternData(last_updated=self.clock())
        await self._save()
        return self.pattern_data

    async def _data(self) -> PatternData:
        if self.pattern_data is None:
            await self.load()
        return self.pattern_data

    async def _save(self) -> None:
        self.pattern_data.last_updated = self.clock()
        try:
            await self.cache.save_scheduling_history(self.user_id, self.pattern_data.to_dict())
        except Exception as e:
            logger.error("Failed to save scheduling history", user_id=self.user_id, error=str(e))
            raise

    # ------------------------------------------------------------------
    # Event tracking
    # ------------------------------------------------------------------

    def _local(self, instant: datetime) -> datetime:
        """Hour and weekday buckets are kept in the user's zone; naive values are UTC."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return instant.astimezone(self.tz)

    def _bump_time_slot(self, data: PatternData, instant: datetime, weight: float) -> None:
        slot = f"{self._local(instant).hour}:00"
        data.time_slots[slot] = data.time_slots.get(slot, 0.0) + weight

    def _bump_day(self, data: PatternData, instant: datetime, weight: float) -> None:
        day = DAY_NAMES[self._local(instant).weekday()]
        data.days_of_week[day] = data.days_of_week.get(day, 0.0) + weight

    def _record_attempt(
        self, data: PatternData, contact_id: str, type: str, timestamp: datetime, success: bool
    ) -> PatternRecord:
        record = data.contact_patterns.setdefault(contact_id, PatternRecord())
        record.record(PatternAttempt.at(timestamp, type, success, tz=self.tz))
        return record

    async def track_snooze(
        self, contact_id: str, from_time: datetime, to_time: datetime, option: str
    ) -> None:
        data = await self._data()
        data.snooze_patterns.append(
            {
                "contact_id": contact_id,
                "from_time": from_time.isoformat(),
                "to_time": to_time.isoformat(),
                "reason": option,
                "timestamp": self.clock().isoformat(),
            }
        )
        self._bump_time_slot(data, from_time, -PATTERN_WEIGHTS["SNOOZE_PATTERNS"])
        self._record_attempt(data, contact_id, option, from_time, success=False)
        await self._save()

    async def track_skip(self, contact_id: str, scheduled_time: datetime) -> None:
        data = await self._data()
        data.skip_patterns.append(
            {
                "contact_id": contact_id,
                "scheduled_time": scheduled_time.isoformat(),
                "timestamp": self.clock().isoformat(),
            }
        )
        self._bump_time_slot(data, scheduled_time, -PATTERN_WEIGHTS["SKIP_PATTERNS"])
        self._record_attempt(data, contact_id, "skip", scheduled_time, success=False)
        await self._save()

    async def track_successful_attempt(self, contact_id: str, attempt_time: datetime) -> None:
        """Record a completed call at ``attempt_time``."""
        data = await self._data()
        data.successful_attempts.append(
            {
                "contact_id": contact_id,
                "attempt_time": attempt_time.isoformat(),
                "timestamp": self.clock().isoformat(),
            }
        )
        self._bump_time_slot(data, attempt_time, PATTERN_WEIGHTS["CALL_ATTEMPTS"])
        self._bump_day(data, attempt_time, PATTERN_WEIGHTS["DAY_OF_WEEK"])
        self._record_attempt(data, contact_id, "call", attempt_time, success=True)
        await self._save()

    async def store_rescheduling_pattern(
        self, contact_id: str, type: str, timestamp: datetime, success: bool
    ) -> PatternRecord:
        data = await self._data()
        record = self._record_attempt(data, contact_id, type, timestamp, success)
        await self._save()
        return record

    async def clear_history(self) -> None:
        self.pattern_data = PatternData(last_updated=self.clock())
        await self._save()
        logger.info("Scheduling history cleared", user_id=self.user_id)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_confidence_score(attempt_count: int, window_days: int) -> float:
        """
        Blend of monthly attempt frequency (40%), attempt volume (40%) and
        window breadth (20%), each capped at 1.0, rounded to 2 decimals.
        """
        if attempt_count <= 0 or window_days <= 0:
            return 0.0
        monthly = attempt_count * 30 / window_days
        score = (
            min(monthly / 10, 1.0) * 0.4
            + min(attempt_count / 20, 1.0) * 0.4
            + min(window_days / 90, 1.0) * 0.2
        )
        return math.floor(min(score, 1.0) * 100 + 0.5) / 100

    async def analyze_contact_patterns(
        self, contact_id: str, window_days: int | None = None
    ) -> PatternAnalysis | None:
        window_days = window_days or settings.PATTERN_ANALYSIS_WINDOW_DAYS
        data = await self._data()
        record = data.contact_patterns.get(contact_id)
        if record is None or not record.attempts:
            return None

        cutoff = self.clock() - timedelta(days=window_days)
        recent = [a for a in record.attempts if a.timestamp > cutoff]
        if not recent:
            return None

        recent_record = PatternRecord(attempts=recent)
        recent_record.rebuild()
        stats = recent_record.aggregated_stats
        success_rates = {
            "by_hour": _rates(stats.by_hour),
            "by_day": _rates(stats.by_day),
            "by_type": _rates(stats.by_type),
        }

        return PatternAnalysis(
            optimal_times=_ranked(success_rates["by_hour"]),
            optimal_days=_ranked(success_rates["by_day"]),
            success_rates=success_rates,
            recent_attempts=len(recent),
            confidence=self.calculate_confidence_score(len(recent), window_days),
            last_updated=record.last_updated,
        )

    async def suggest_optimal_time(
        self, contact_id: str, base_time: datetime, type: str = "recurring"
    ) -> datetime:
        """
        Best historical hour later on the same local day, else the best hour
        overall on the next day, in the user's zone. Without hourly stats,
        base_time plus three hours.
        """
        data = await self._data()
        record = data.contact_patterns.get(contact_id)
        by_hour = record.aggregated_stats.by_hour if record else {}
        if not by_hour:
            return base_time + timedelta(hours=SUGGESTION_FALLBACK_HOURS)

        base_local = self._local(base_time)
        rates = _rates(by_hour)
        later = {hour: rate for hour, rate in rates.items() if hour > base_local.hour}
        candidates = later or rates
        # Highest rate wins; earliest hour breaks ties
        best_hour = min(candidates, key=lambda hour: (-candidates[hour], hour))

        day = base_local.date() if later else base_local.date() + timedelta(days=1)
        suggestion = datetime.combine(day, time(best_hour), tzinfo=self.tz)
        logger.debug(
            "Suggested optimal time",
            contact_id=contact_id,
            type=type,
            hour=best_hour,
            rolled_to_next_day=not later,
        )
        return suggestion

    async def get_pattern_analysis(self) -> dict[str, Any]:
        data = await self._data()
        cutoff = self.clock() - timedelta(days=RECENT_EVENT_DAYS)

        def recent(events: list[dict[str, Any]]) -> int:
            count = 0
            for event in events:
                timestamp = parse_instant(event.get("timestamp"))
                if timestamp is not None and timestamp >= cutoff:
                    count += 1
            return count

        return {
            "preferred_time_slots": sorted(
                data.time_slots.items(), key=lambda item: item[1], reverse=True
            )[:BEST_TIME_SLOTS],
            "preferred_days": sorted(
                data.days_of_week.items(), key=lambda item: item[1], reverse=True
            ),
            "recent_snooze_count": recent(data.snooze_patterns),
            "recent_skip_count": recent(data.skip_patterns),
        }

    @staticmethod
    def get_time_preference(attempts: list[PatternAttempt]) -> dict[str, int]:
        periods = {name: 0 for name, _, _ in TIME_PERIODS}
        for attempt in attempts:
            for name, first, end in TIME_PERIODS:
                if first <= attempt.hour_of_day < end:
                    periods[name] += 1
                    break
        return periods
