"""
Service layer for the scheduling feature.
"""

from .blocking_policy import BlockingPolicy
from .conflict_resolver import ConflictResolver
from .gap_policy import GapPolicy, has_conflict
from .preliminary_date import calculate_preliminary_date, resolve_timezone
from .scheduling_history import SchedulingHistory
from .scheduling_service import SchedulingService
from .slot_search import SlotSearch
from .snooze_handler import SnoozeHandler, compute_snooze_stats
from .time_preferences import TimePreferenceResolver

__all__ = [
    "BlockingPolicy",
    "ConflictResolver",
    "GapPolicy",
    "SchedulingHistory",
    "SchedulingService",
    "SlotSearch",
    "SnoozeHandler",
    "TimePreferenceResolver",
    "calculate_preliminary_date",
    "compute_snooze_stats",
    "has_conflict",
    "resolve_timezone",
]
