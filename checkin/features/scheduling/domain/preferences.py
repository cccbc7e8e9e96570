"""
Preference models for the scheduling engine.

User and contact documents arrive from the preferences/contact stores as
plain dicts; these models validate them and normalise "HH:MM" strings and
weekday names so the policies can compare plain minutes-since-midnight.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from checkin.config import settings
from checkin.features.scheduling.constants import DAY_NAMES, DEFAULT_ACTIVE_HOURS, WEEKDAYS


class TimeOfDay(BaseModel):
    """Wall-clock time compared as minutes since midnight."""

    model_config = ConfigDict(frozen=True)

    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    @model_validator(mode="before")
    @classmethod
    def _parse_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            hour, _, minute = value.strip().partition(":")
            return {"hour": int(hour), "minute": int(minute or 0)}
        return value

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def _normalize_days(value: Any) -> Any:
    if value is None:
        return value
    return [str(day).strip().lower() for day in value if str(day).strip().lower() in DAY_NAMES]


class DayWindow(BaseModel):
    """Active-hours interval in local time."""

    start: TimeOfDay
    end: TimeOfDay

    def contains(self, minutes: int) -> bool:
        return self.start.minutes <= minutes <= self.end.minutes

    @property
    def length_minutes(self) -> int:
        return self.end.minutes - self.start.minutes

    def __str__(self) -> str:
        return f"{self.start} - {self.end}"


class ExcludedWindow(BaseModel):
    """Blocked interval on a set of weekdays; end < start spans midnight."""

    days: list[str] = Field(default_factory=list)
    start: TimeOfDay
    end: TimeOfDay

    @field_validator("days", mode="before")
    @classmethod
    def _normalize_weekdays(cls, value: Any) -> Any:
        return _normalize_days(value)

    @property
    def wraps_midnight(self) -> bool:
        return self.end.minutes < self.start.minutes

    def blocks(self, day_name: str, minutes: int, allow_wrap: bool = False) -> bool:
        """Return True when the window covers the given weekday and time."""
        if day_name not in self.days:
            return False
        if allow_wrap and self.wraps_midnight:
            return minutes >= self.start.minutes or minutes <= self.end.minutes
        return self.start.minutes <= minutes <= self.end.minutes


def _default_active_hours() -> DayWindow:
    return DayWindow.model_validate(DEFAULT_ACTIVE_HOURS)


class TimePreferences(BaseModel):
    """Effective calling window for a relationship type or a single contact."""

    model_config = ConfigDict(populate_by_name=True)

    active_hours: DayWindow = Field(default_factory=_default_active_hours, alias="activeHours")
    preferred_days: list[str] = Field(default_factory=lambda: list(WEEKDAYS), alias="preferredDays")
    excluded_times: list[ExcludedWindow] = Field(default_factory=list, alias="excludedTimes")

    @field_validator("preferred_days", mode="before")
    @classmethod
    def _normalize_preferred_days(cls, value: Any) -> Any:
        return _normalize_days(value)

    @field_validator("active_hours", "excluded_times", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any, info) -> Any:
        if value is None:
            return _default_active_hours() if info.field_name == "active_hours" else []
        return value


class SchedulingPreferences(BaseModel):
    """Per-user scheduling preferences."""

    model_config = ConfigDict(populate_by_name=True)

    minimum_gap_minutes: int = Field(
        default_factory=lambda: settings.MINIMUM_GAP_MINUTES, ge=0, alias="minimumGapMinutes"
    )
    optimal_gap_minutes: int = Field(
        default_factory=lambda: settings.OPTIMAL_GAP_MINUTES, ge=0, alias="optimalGapMinutes"
    )
    global_excluded_times: list[ExcludedWindow] = Field(
        default_factory=list, alias="globalExcludedTimes"
    )
    relationship_types: dict[str, TimePreferences] = Field(
        default_factory=dict, alias="relationshipTypes"
    )

    @model_validator(mode="before")
    @classmethod
    def _flatten_document(cls, value: Any) -> Any:
        """
        Accept the stored user document shape, where gap settings sit under
        a nested "scheduling_preferences" key next to the relationship map.
        """
        if not isinstance(value, dict):
            return value
        nested = value.get("scheduling_preferences")
        if isinstance(nested, dict):
            merged = {k: v for k, v in value.items() if k != "scheduling_preferences"}
            for key, item in nested.items():
                merged.setdefault(key, item)
            value = merged
        return {k: v for k, v in value.items() if v is not None}


class ContactSchedulingProfile(BaseModel):
    """Scheduling block stored on a contact."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    relationship_type: str | None = None
    custom_schedule: bool = False
    custom_preferences: TimePreferences | None = None
    priority: str = "normal"
    frequency: str | None = None
    snooze_count: int = Field(default=0, ge=0)
    last_snooze_type: str | None = None
    status: str = "pending"

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> str:
        priority = str(value or "normal").strip().lower()
        return priority if priority in ("high", "normal", "low") else "normal"

    @field_validator("frequency", mode="before")
    @classmethod
    def _normalize_frequency(cls, value: Any) -> str | None:
        return str(value).strip().lower() if value else None


class Contact(BaseModel):
    """Contact record as far as the scheduler is concerned."""

    model_config = ConfigDict(extra="allow")

    id: str
    user_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    scheduling: ContactSchedulingProfile = Field(default_factory=ContactSchedulingProfile)

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or "Contact"
