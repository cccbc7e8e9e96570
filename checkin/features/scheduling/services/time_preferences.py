from checkin.features.scheduling.domain.preferences import (
    Contact,
    SchedulingPreferences,
    TimePreferences,
)
from checkin.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class TimePreferenceResolver:
    """
    Resolve the calling window that applies to a contact.

    Precedence: the contact's own custom schedule, then the user's entry for
    the contact's relationship type, then the 09:00-17:00 weekday default.
    """

    def __init__(self, preferences: SchedulingPreferences):
        self.preferences = preferences

    def resolve(self, contact: Contact) -> TimePreferences:
        profile = contact.scheduling

        if profile.custom_schedule and profile.custom_preferences is not None:
            return profile.custom_preferences

        relationship = profile.relationship_type
        if relationship and relationship in self.preferences.relationship_types:
            return self.preferences.relationship_types[relationship]

        if relationship:
            logger.debug(
                "No preferences for relationship type, using default",
                contact_id=contact.id,
                relationship_type=relationship,
            )
        return TimePreferences()
