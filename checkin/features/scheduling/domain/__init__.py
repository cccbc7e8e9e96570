"""
Domain subpackage for the scheduling feature.
"""

from .errors import (
    InvalidDateError,
    InvalidFrequencyError,
    InvalidSnoozeOptionError,
    InvalidTimezoneError,
    MaxAttemptsExceededError,
    NoSlotAvailableError,
    SchedulingError,
)
from .models import (
    GapValidation,
    Increment,
    Reminder,
    ReminderStatus,
    ReminderType,
    ScoredSlot,
    SlotsFilledDetails,
    SlotsFilledResponse,
    SnoozeOption,
    SnoozeStats,
)
from .patterns import (
    AggregatedStats,
    BucketStats,
    PatternAnalysis,
    PatternAttempt,
    PatternData,
    PatternRecord,
)
from .preferences import (
    Contact,
    ContactSchedulingProfile,
    DayWindow,
    ExcludedWindow,
    SchedulingPreferences,
    TimeOfDay,
    TimePreferences,
)

__all__ = [
    "AggregatedStats",
    "BucketStats",
    "Contact",
    "ContactSchedulingProfile",
    "DayWindow",
    "ExcludedWindow",
    "GapValidation",
    "Increment",
    "InvalidDateError",
    "InvalidFrequencyError",
    "InvalidSnoozeOptionError",
    "InvalidTimezoneError",
    "MaxAttemptsExceededError",
    "NoSlotAvailableError",
    "PatternAnalysis",
    "PatternAttempt",
    "PatternData",
    "PatternRecord",
    "Reminder",
    "ReminderStatus",
    "ReminderType",
    "SchedulingError",
    "SchedulingPreferences",
    "ScoredSlot",
    "SlotsFilledDetails",
    "SlotsFilledResponse",
    "SnoozeOption",
    "SnoozeStats",
    "TimeOfDay",
    "TimePreferences",
]
