"""Blueprint exports."""

from . import auth, habit_logs, habits, notifications, stats

__all__ = [
    "auth",
    "habit_logs",
    "habits",
    "notifications",
    "stats",
]
