from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from checkin.features.scheduling.domain.patterns import PatternAttempt
from checkin.features.scheduling.repository.pattern_cache import InMemoryPatternCache
from checkin.features.scheduling.services.scheduling_history import SchedulingHistory

TZ = ZoneInfo("America/New_York")


def at(month: int, day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, month, day, hour, minute, tzinfo=TZ)


@pytest.mark.parametrize(
    "attempts,window,expected",
    [(10, 30, 0.67), (2, 90, 0.27), (0, 90, 0.0), (5, 0, 0.0), (40, 90, 1.0)],
)
def test_confidence_score(attempts, window, expected):
    assert SchedulingHistory.calculate_confidence_score(attempts, window) == expected


def test_frequent_recent_attempts_score_higher():
    score = SchedulingHistory.calculate_confidence_score

    assert score(10, 30) > score(2, 90)
    assert all(score(0, days) == 0 for days in (1, 30, 90, 365))


class TestTracking:
    @pytest.mark.asyncio
    async def test_load_creates_and_saves_empty_history(self, clock):
        cache = InMemoryPatternCache()
        history = SchedulingHistory("user-123", cache, clock=clock, timezone="America/New_York")

        data = await history.load()

        assert data.contact_patterns == {}
        assert "user-123" in cache.store

    @pytest.mark.asyncio
    async def test_event_weights(self, history):
        monday_ten = at(1, 15, 10)

        await history.track_snooze("contact-1", monday_ten, monday_ten + timedelta(hours=3), "later_today")
        await history.track_skip("contact-1", at(1, 16, 10, 30))
        await history.track_successful_attempt("contact-1", at(1, 17, 14))

        data = history.pattern_data
        assert data.time_slots["10:00"] == pytest.approx(-1.2)
        assert data.time_slots["14:00"] == pytest.approx(1.0)
        # Day weights only move on successful calls
        assert data.days_of_week == {"wednesday": pytest.approx(0.6)}
        record = data.contact_patterns["contact-1"]
        assert [a.type for a in record.attempts] == ["later_today", "skip", "call"]
        assert [a.success for a in record.attempts] == [False, False, True]

    @pytest.mark.asyncio
    async def test_aggregates_match_attempts(self, history):
        for day, success in ((8, True), (9, False), (10, True)):
            await history.store_rescheduling_pattern("contact-1", "call", at(1, day, 11), success)

        stats = history.pattern_data.contact_patterns["contact-1"].aggregated_stats
        assert stats.by_hour[11].attempts == 3
        assert stats.by_hour[11].successes == 2
        assert stats.by_type["call"].attempts == 3
        assert sum(bucket.attempts for bucket in stats.by_day.values()) == 3

    @pytest.mark.asyncio
    async def test_same_timestamp_replaces_attempt(self, history):
        await history.store_rescheduling_pattern("contact-1", "call", at(1, 10, 11), False)
        record = await history.store_rescheduling_pattern("contact-1", "call", at(1, 10, 11), True)

        assert len(record.attempts) == 1
        assert record.aggregated_stats.by_hour[11].successes == 1

    @pytest.mark.asyncio
    async def test_history_survives_reload(self, clock):
        cache = InMemoryPatternCache()
        first = SchedulingHistory("user-123", cache, clock=clock, timezone="America/New_York")
        await first.track_successful_attempt("contact-1", at(1, 10, 14))

        second = SchedulingHistory("user-123", cache, clock=clock, timezone="America/New_York")
        await second.load()

        record = second.pattern_data.contact_patterns["contact-1"]
        assert record.attempts[0].hour_of_day == 14
        assert record.attempts[0].timestamp == at(1, 10, 14)
        assert second.pattern_data.time_slots == {"14:00": 1.0}

    @pytest.mark.asyncio
    async def test_clear_history(self, history):
        await history.track_successful_attempt("contact-1", at(1, 10, 14))

        await history.clear_history()

        assert history.pattern_data.contact_patterns == {}
        assert history.pattern_data.time_slots == {}


class TestAnalysis:
    @pytest.mark.asyncio
    async def test_unknown_contact_has_no_analysis(self, history):
        assert await history.analyze_contact_patterns("nobody") is None

    @pytest.mark.asyncio
    async def test_old_attempts_are_ignored(self, history):
        await history.store_rescheduling_pattern("contact-1", "call", at(1, 15, 9) - timedelta(days=200), True)

        assert await history.analyze_contact_patterns("contact-1", 90) is None

    @pytest.mark.asyncio
    async def test_analysis_ranks_hours_and_days(self, history):
        for days_ago in range(1, 11):
            await history.store_rescheduling_pattern(
                "contact-1", "call", at(1, 15, 14) - timedelta(days=days_ago), True
            )
        await history.store_rescheduling_pattern("contact-1", "call", at(1, 12, 9), False)
        await history.store_rescheduling_pattern(
            "contact-1", "call", at(1, 15, 14) - timedelta(days=120), False
        )

        analysis = await history.analyze_contact_patterns("contact-1", 90)

        assert analysis.recent_attempts == 11
        assert analysis.optimal_times[0] == (14, 1.0)
        assert analysis.success_rates["by_hour"][9] == 0.0
        assert analysis.confidence == SchedulingHistory.calculate_confidence_score(11, 90)
        assert analysis.last_updated == at(1, 14, 14)
        assert len(analysis.optimal_days) == 3

    @pytest.mark.asyncio
    async def test_suggest_later_hour_same_day(self, history):
        await history.store_rescheduling_pattern("contact-1", "call", at(1, 8, 14), True)
        await history.store_rescheduling_pattern("contact-1", "call", at(1, 9, 16), True)

        suggestion = await history.suggest_optimal_time("contact-1", at(1, 15, 10))

        assert suggestion == at(1, 15, 14)

    @pytest.mark.asyncio
    async def test_suggest_rolls_to_next_day(self, history):
        await history.store_rescheduling_pattern("contact-1", "call", at(1, 8, 9), True)
        await history.store_rescheduling_pattern("contact-1", "call", at(1, 9, 11), False)

        suggestion = await history.suggest_optimal_time("contact-1", at(1, 15, 16))

        assert suggestion == at(1, 16, 9)

    @pytest.mark.asyncio
    async def test_suggest_without_history(self, history):
        assert await history.suggest_optimal_time("contact-1", at(1, 15, 10)) == at(1, 15, 13)

    @pytest.mark.asyncio
    async def test_pattern_summary(self, history, fixed_now):
        await history.track_snooze("contact-1", at(1, 15, 10), at(1, 15, 13), "later_today")
        await history.track_skip("contact-1", at(1, 15, 16))
        await history.track_successful_attempt("contact-1", at(1, 12, 11))
        history.pattern_data.snooze_patterns.append(
            {"contact_id": "c2", "timestamp": (fixed_now - timedelta(days=45)).isoformat()}
        )

        summary = await history.get_pattern_analysis()

        assert summary["preferred_time_slots"][0] == ("11:00", 1.0)
        assert summary["preferred_days"] == [("friday", pytest.approx(0.6))]
        assert summary["recent_snooze_count"] == 1
        assert summary["recent_skip_count"] == 1

    def test_time_preference_periods(self):
        attempts = [
            PatternAttempt.at(at(1, 15, hour), "call", True) for hour in (7, 13, 16, 19, 23)
        ]

        assert SchedulingHistory.get_time_preference(attempts) == {
            "morning": 1,
            "afternoon": 2,
            "evening": 1,
        }

    @pytest.mark.asyncio
    async def test_buckets_follow_user_zone(self, history):
        # 19:00 UTC is 14:00 in New York during January
        for day in range(1, 21):
            await history.track_successful_attempt("contact-1", datetime(2024, 1, day, 19, tzinfo=UTC))

        assert set(history.pattern_data.time_slots) == {"14:00"}
        record = history.pattern_data.contact_patterns["contact-1"]
        assert {a.hour_of_day for a in record.attempts} == {14}

        suggestion = await history.suggest_optimal_time("contact-1", at(1, 15, 10))

        assert suggestion == at(1, 15, 14)

    def test_attempt_weekday_uses_zone(self):
        # Saturday 02:00 UTC is still Friday evening in New York
        attempt = PatternAttempt.at(datetime(2024, 1, 13, 2, tzinfo=UTC), "call", True, tz=TZ)

        assert (attempt.hour_of_day, attempt.weekday) == (21, "friday")
