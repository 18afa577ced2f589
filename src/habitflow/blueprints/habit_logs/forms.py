"""Completion log payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CompletionForm(BaseModel):
    """Log a completion; ``completed_at`` defaults to now."""

    model_config = ConfigDict(str_strip_whitespace=True)

    habit_id: int = Field(ge=1)
    completed_at: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class CompletionUpdateForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    completed_at: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=500)


__all__ = ["CompletionForm", "CompletionUpdateForm"]
