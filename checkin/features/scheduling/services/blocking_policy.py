from datetime import datetime, tzinfo

from checkin.features.scheduling.constants import BLOCKED_TIMES, DAY_NAMES, TIME_BUFFER
from checkin.features.scheduling.domain.preferences import Contact, ExcludedWindow
from checkin.features.scheduling.services.time_preferences import TimePreferenceResolver


def near_blocked_mark(minutes: int) -> bool:
    """True within TIME_BUFFER minutes of a default reminder-app time."""
    return any(abs(minutes - (hour * 60 + minute)) <= TIME_BUFFER for hour, minute in BLOCKED_TIMES)


class BlockingPolicy:
    """Decides whether an instant is off limits for a contact."""

    def __init__(
        self,
        tz: tzinfo,
        resolver: TimePreferenceResolver,
        global_excluded_times: list[ExcludedWindow] | None = None,
    ):
        self.tz = tz
        self.resolver = resolver
        self.global_excluded_times = global_excluded_times or []

    def is_blocked(self, instant: datetime, contact: Contact) -> bool:
        local = instant.astimezone(self.tz)
        day_name = DAY_NAMES[local.weekday()]
        minutes = local.hour * 60 + local.minute

        # Contact windows never wrap; global windows may span midnight
        for window in self.resolver.resolve(contact).excluded_times:
            if window.blocks(day_name, minutes):
                return True

        if near_blocked_mark(minutes):
            return True

        return any(
            window.blocks(day_name, minutes, allow_wrap=True) for window in self.global_excluded_times
        )
