"""Concrete repository implementations using SQLModel."""

from .completion import SQLModelCompletionRepository
from .habit import SQLModelHabitRepository
from .preferences import SQLModelAchievementRepository, SQLModelPreferenceRepository
from .user import SQLModelUserRepository

__all__ = [
    "SQLModelAchievementRepository",
    "SQLModelCompletionRepository",
    "SQLModelHabitRepository",
    "SQLModelPreferenceRepository",
    "SQLModelUserRepository",
]
