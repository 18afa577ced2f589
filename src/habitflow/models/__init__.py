"""SQLModel table exports."""

from .habit import CompletionLog, Habit
from .notification import AchievementGrant, NotificationPreference
from .user import User

__all__ = [
    "AchievementGrant",
    "CompletionLog",
    "Habit",
    "NotificationPreference",
    "User",
]
