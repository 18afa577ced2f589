"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from .config import BaseConfig
from .infra.database import bootstrap_database
from .infra.repositories import (
    SQLModelAchievementRepository,
    SQLModelCompletionRepository,
    SQLModelHabitRepository,
    SQLModelPreferenceRepository,
    SQLModelUserRepository,
)
from .services.email import EmailTransport, build_transport
from .services.habits import HabitService
from .services.notifications import NotificationDispatcher


@dataclass
class AppContext:
    """Centralized application context with repositories and services."""

    # Configuration
    config: BaseConfig

    # Database
    engine: Engine
    session_factory: Callable[[], Session]

    # Repositories
    user_repo: SQLModelUserRepository
    habit_repo: SQLModelHabitRepository
    completion_repo: SQLModelCompletionRepository
    preference_repo: SQLModelPreferenceRepository
    achievement_repo: SQLModelAchievementRepository

    # Services
    transport: EmailTransport
    habits: HabitService
    dispatcher: NotificationDispatcher


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    transport: Optional[EmailTransport] = None,
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    engine, session_factory = bootstrap_database(config)

    user_repo = SQLModelUserRepository(session_factory)
    habit_repo = SQLModelHabitRepository(session_factory)
    completion_repo = SQLModelCompletionRepository(session_factory)
    preference_repo = SQLModelPreferenceRepository(session_factory)
    achievement_repo = SQLModelAchievementRepository(session_factory)

    transport = transport or build_transport(config)

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        user_repo=user_repo,
        habit_repo=habit_repo,
        completion_repo=completion_repo,
        preference_repo=preference_repo,
        achievement_repo=achievement_repo,
        transport=transport,
        habits=HabitService(
            habits=habit_repo,
            completions=completion_repo,
            users=user_repo,
            default_timezone=config.DEFAULT_TIMEZONE,
        ),
        dispatcher=NotificationDispatcher(
            users=user_repo,
            habits=habit_repo,
            completions=completion_repo,
            preferences=preference_repo,
            achievements=achievement_repo,
            transport=transport,
            default_timezone=config.DEFAULT_TIMEZONE,
        ),
    )
