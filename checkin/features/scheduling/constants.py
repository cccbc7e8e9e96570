"""
Scheduling constants shared by the scheduling engine components.

Values that users may reasonably want to tune (gap minutes, snooze limit,
pattern thresholds) live in checkin.config.settings instead.
"""

FREQUENCY_MAPPINGS: dict[str, int] = {
    "daily": 1,
    "weekly": 7,
    "biweekly": 14,
    "monthly": 30,
    "quarterly": 90,
    "yearly": 365,
}

# Days of drift allowed around a target date, by contact priority
PRIORITY_FLEXIBILITY: dict[str, int] = {
    "high": 1,
    "normal": 3,
    "low": 5,
}

PRIORITY_SCORES: dict[str, float] = {
    "high": 1.0,
    "normal": 0.5,
    "low": 0.3,
}

# Default reminder times used by the OS reminder app, avoided with a buffer
BLOCKED_TIMES: list[tuple[int, int]] = [
    (9, 0),
    (15, 0),
    (18, 0),
]
TIME_BUFFER = 5  # minutes either side of a blocked mark

TIME_SLOT_INTERVAL = 15  # minutes
MAX_ATTEMPTS = 32
MAX_SEARCH_OFFSET = 32  # bidirectional search tries offsets 1..31
WORKING_DAYS_PER_WEEK = 5

AFTERNOON_HOUR = 14  # start of the within-day shift scan
EXPANSION_HOURS = 1  # active-hours widening used by the expand strategy

# Forward scan used by the gap helpers (12 hours of 15-minute slots)
GAP_SCAN_ATTEMPTS = 48

SCORE_WEIGHTS: dict[str, float] = {
    "DISTANCE_FROM_REMINDERS": 2.0,
    "PREFERRED_TIME_POSITION": 1.5,
    "CONTACT_PRIORITY": 1.0,
}
TOP_SLOT_CANDIDATES = 3

DAY_NAMES: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
WEEKDAYS: tuple[str, ...] = DAY_NAMES[:5]

DEFAULT_ACTIVE_HOURS = {"start": "09:00", "end": "17:00"}

SLOTS_FILLED_STATUS = "SLOTS_FILLED"
SLOTS_FILLED_MESSAGE = "This day is fully booked. Would you like to:"
SLOTS_FILLED_OPTIONS = ["Try the next available day", "Schedule for next week"]

# =================================================================
# SNOOZE
# =================================================================

# (first hour, last hour inclusive, min delay, max delay) for "Later Today"
LATER_TODAY_DELAYS: list[tuple[int, int, int, int]] = [
    (0, 3, 20, 40),
    (17, 18, 120, 150),
    (19, 20, 50, 80),
    (21, 23, 20, 40),
]
LATER_TODAY_DEFAULT_DELAY = (150, 210)

# Fallback window (next day) when no slot can be found for "Later Today"
LATER_TODAY_FALLBACK_START_HOUR = 2
LATER_TODAY_FALLBACK_END_HOUR = 5

SNOOZE_OPTION_IDS: tuple[str, ...] = ("later_today", "tomorrow", "next_week", "skip")
CONTACT_NOW = "contact_now"
RESCHEDULE = "reschedule"

SNOOZE_OPTIONS: dict[str, dict[str, str]] = {
    "later_today": {"icon": "time-outline", "text": "Later Today"},
    "tomorrow": {"icon": "calendar-outline", "text": "Tomorrow"},
    "next_week": {"icon": "calendar-clear-outline", "text": "Next Week"},
    "skip": {"icon": "close-circle-outline", "text": "Skip This Call"},
    CONTACT_NOW: {"icon": "call-outline", "text": "Contact Now"},
    RESCHEDULE: {"icon": "refresh-outline", "text": "Reschedule"},
}

SNOOZE_INDICATORS = {
    "NORMAL": "normal",
    "WARNING": "warning",
    "CRITICAL": "critical",
}

SNOOZE_LIMIT_MESSAGES = {
    "REMAINING": "You can snooze this reminder {remaining} more times",
    "LAST_REMAINING": "This is your last snooze for this reminder",
    "MAX_REACHED": "You've reached the maximum number of snoozes",
    "DAILY_LIMIT": "Daily check-ins can only be pushed back within the day",
    "WEEKLY_LIMIT": "Weekly check-ins can be pushed back a few days at most",
    "DAILY_MAX_REACHED": "This daily check-in can't be snoozed again. Call now or skip today",
    "RECURRING_MAX_REACHED": "No snoozes left. Reschedule to pick a new time",
}

# =================================================================
# PATTERN HISTORY
# =================================================================

PATTERN_WEIGHTS = {
    "CALL_ATTEMPTS": 1.0,
    "SNOOZE_PATTERNS": 0.7,
    "SKIP_PATTERNS": 0.5,
    "TIME_OF_DAY": 0.8,
    "DAY_OF_WEEK": 0.6,
}

SUGGESTION_FALLBACK_HOURS = 3
RECENT_EVENT_DAYS = 30
