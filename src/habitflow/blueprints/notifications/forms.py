"""Notification preference and trigger payloads."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..habits.forms import REMINDER_TIME_PATTERN


class PreferenceForm(BaseModel):
    """Partial update of notification preferences."""

    model_config = ConfigDict(str_strip_whitespace=True)

    daily_reminder: Optional[bool] = None
    weekly_summary: Optional[bool] = None
    achievement_alerts: Optional[bool] = None
    reminder_time: Optional[str] = Field(default=None, pattern=REMINDER_TIME_PATTERN)


class SendForm(BaseModel):
    """Body of ``POST /api/emails/<type>``; ``user_id`` is honoured for service callers only."""

    user_id: Optional[int] = Field(default=None, ge=1)
    data: dict[str, Any] = Field(default_factory=dict)


class TriggerForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    type: str = Field(min_length=1)
    user_id: Optional[int] = Field(default=None, ge=1)
    background: bool = False
    data: dict[str, Any] = Field(default_factory=dict)


__all__ = ["PreferenceForm", "SendForm", "TriggerForm"]
