"""
Persistence layer for the scheduling feature.
"""

from .collaborators import (
    ContactStore,
    NotificationScheduler,
    PatternCache,
    PreferencesStore,
    ReminderStore,
)
from .pattern_cache import InMemoryPatternCache, RedisPatternCache
from .reminder_repository import InMemoryReminderRepository, ReminderRepository

__all__ = [
    "ContactStore",
    "InMemoryPatternCache",
    "InMemoryReminderRepository",
    "NotificationScheduler",
    "PatternCache",
    "PreferencesStore",
    "RedisPatternCache",
    "ReminderRepository",
    "ReminderStore",
]
