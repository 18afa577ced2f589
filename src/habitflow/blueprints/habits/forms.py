"""Habit form definitions."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...models.habit import DEFAULT_ICON

REMINDER_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class HabitType(str, Enum):
    """Build a habit or break one."""

    POSITIVE = "positive"
    NEGATIVE = "negative"


class HabitCadence(str, Enum):
    """Supported cadence options for habits."""

    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class FrequencyForm(BaseModel):
    """Schedule of a habit; ``days`` use 0=Sunday .. 6=Saturday."""

    model_config = ConfigDict(extra="ignore")

    type: HabitCadence = Field(default=HabitCadence.DAILY, description="Habit frequency")
    days: list[int] = Field(default_factory=list, description="Scheduled weekdays")
    count: int = Field(default=1, ge=1, le=31, description="Target completions per period")

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("Days must be between 0 (Sunday) and 6 (Saturday).")
        return sorted(set(value))

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "count": self.count}
        if self.days:
            data["days"] = self.days
        return data


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class HabitForm(BaseModel):
    """Form model for creating a habit."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(description="Short label for the habit", max_length=100)
    icon: str = Field(default=DEFAULT_ICON, max_length=16)
    habit_type: HabitType = Field(default=HabitType.POSITIVE, alias="type")
    frequency: FrequencyForm = Field(default_factory=FrequencyForm)
    reminder_time: Optional[str] = Field(
        default=None, pattern=REMINDER_TIME_PATTERN, description="Preferred reminder time (HH:MM)"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        """Ensure the habit name is present when validating submissions."""

        if not value or not value.strip():
            raise ValueError("Please provide a habit name.")
        return value

    @field_validator("icon", mode="before")
    @classmethod
    def default_icon(cls, value: Any) -> Any:
        return _blank_to_none(value) or DEFAULT_ICON

    @field_validator("reminder_time", mode="before")
    @classmethod
    def blank_reminder(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def to_fields(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "icon": self.icon,
            "habit_type": self.habit_type.value,
            "frequency": self.frequency.to_json(),
            "reminder_time": self.reminder_time,
        }


class HabitUpdateForm(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=16)
    habit_type: Optional[HabitType] = Field(default=None, alias="type")
    frequency: Optional[FrequencyForm] = None
    reminder_time: Optional[str] = Field(default=None, pattern=REMINDER_TIME_PATTERN)
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("Please provide a habit name.")
        return value

    @field_validator("reminder_time", mode="before")
    @classmethod
    def blank_reminder(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if isinstance(value, FrequencyForm):
                value = value.to_json()
            elif isinstance(value, Enum):
                value = value.value
            changes[key] = value
        return changes


__all__ = ["FrequencyForm", "HabitCadence", "HabitForm", "HabitType", "HabitUpdateForm"]
