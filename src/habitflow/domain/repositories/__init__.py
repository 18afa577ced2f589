"""Repository protocol definitions for domain layer."""

from .completion import CompletionRepository
from .habit import HabitRepository
from .preferences import AchievementRepository, PreferenceRepository
from .user import UserRepository

__all__ = [
    "AchievementRepository",
    "CompletionRepository",
    "HabitRepository",
    "PreferenceRepository",
    "UserRepository",
]
