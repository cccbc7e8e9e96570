"""
Check-in scheduling feature package.

Everything that decides when a contact should next be called lives here:
preference models and reminder records (domain), the reminder repository
and collaborator contracts (repository), and the scheduling, snooze and
pattern-history services (services).
"""

# Re-export the primary building blocks for easy access.
from .domain.errors import SchedulingError  # noqa: F401
from .domain.models import Reminder, SlotsFilledResponse  # noqa: F401
from .repository.pattern_cache import InMemoryPatternCache, RedisPatternCache  # noqa: F401
from .repository.reminder_repository import InMemoryReminderRepository  # noqa: F401
from .services.scheduling_history import SchedulingHistory  # noqa: F401
from .services.scheduling_service import SchedulingService  # noqa: F401
from .services.snooze_handler import SnoozeHandler  # noqa: F401
