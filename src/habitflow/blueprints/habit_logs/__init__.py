"""Habit log blueprint package."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint("habit_logs", __name__, url_prefix="/api/habit-logs")

from . import routes  # noqa: E402,F401 - import routes for registration

__all__ = ["bp"]
