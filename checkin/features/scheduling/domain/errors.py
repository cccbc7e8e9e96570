"""
Error taxonomy for the scheduling engine.

Algorithmic exhaustion (no slot, too many attempts) always reaches the
caller. Persistence errors raised by collaborators are not wrapped.
"""


class SchedulingError(Exception):
    """Base exception for scheduling engine operations."""

    def __init__(self, message: str, contact_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.contact_id = contact_id
        self.recoverable = recoverable


class InvalidFrequencyError(SchedulingError):
    """Frequency string is not one of the supported cadences."""


class InvalidTimezoneError(SchedulingError):
    """Zone identifier could not be resolved."""


class InvalidDateError(SchedulingError):
    """A custom date was missing or unparseable."""


class NoSlotAvailableError(SchedulingError):
    """Slot search exhausted both same-day and next-day options."""


class MaxAttemptsExceededError(SchedulingError):
    """Conflict resolution ran out of attempts or strategies."""


class InvalidSnoozeOptionError(SchedulingError):
    """Snooze option id is not recognised."""
