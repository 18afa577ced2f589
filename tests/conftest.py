"""Pytest configuration and shared fixtures for HabitFlow tests.

This module provides database fixtures, test data factories, and a Flask test
client wired to an in-memory email outbox, so tests never touch the real
database or send real email.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

import pytest
from sqlmodel import SQLModel, create_engine

from habitflow import create_app
from habitflow.config import TestConfig
from habitflow.infra.database import create_session_factory
from habitflow.infra.repositories import (
    SQLModelAchievementRepository,
    SQLModelCompletionRepository,
    SQLModelHabitRepository,
    SQLModelPreferenceRepository,
    SQLModelUserRepository,
)
from habitflow.models import CompletionLog, Habit, User
from habitflow.services.email import OutboxTransport
from habitflow.services.habits import HabitService
from habitflow.services.jobs import clear_jobs, set_async_execution
from habitflow.services.notifications import NotificationDispatcher

# Wednesday; most tests pin "today" to this day.
TODAY = date(2024, 5, 15)
NOON = time(12, 0)


def at_noon(day: date) -> datetime:
    return datetime.combine(day, NOON, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine(tmp_path: Path):
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine with all tables created
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'habitflow-test.db'}", echo=False)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching ``Callable[[], Session]`` used by repositories.

    A default user is bootstrapped and exposed as ``factory.user``.
    """
    factory = create_session_factory(db_engine)

    with factory() as session:
        user_row = User(
            email="tester@example.com",
            password_hash="dummy-hash",
            display_name="Tester",
            timezone="UTC",
        )
        session.add(user_row)
        session.commit()
        session.refresh(user_row)
        session.expunge(user_row)
    factory.user = user_row  # type: ignore[attr-defined]

    return factory


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def user(session_factory) -> User:
    """The default user for scoping data."""

    return session_factory.user


@pytest.fixture
def user_factory(session_factory):
    """Factory for creating additional users."""

    counter = {"n": 0}

    def _create_user(
        email: str | None = None,
        display_name: str | None = None,
        tz: str = "UTC",
    ) -> User:
        counter["n"] += 1
        with session_factory() as session:
            row = User(
                email=email or f"user{counter['n']}@example.com",
                password_hash="dummy-hash",
                display_name=display_name,
                timezone=tz,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row

    return _create_user


@pytest.fixture
def habit_factory(session_factory, user):
    """Factory for creating test habits.

    ``created_on`` defaults to well before ``TODAY`` so completion rates use
    the full window.
    """

    def _create_habit(
        name: str = "Test Habit",
        frequency: dict | None = None,
        is_active: bool = True,
        created_on: date | None = None,
        owner: User | None = None,
        icon: str = "🏃",
    ) -> Habit:
        owner = owner or user
        created = at_noon(created_on or TODAY - timedelta(days=365))
        with session_factory() as session:
            habit = Habit(
                user_id=owner.id,
                name=name,
                icon=icon,
                frequency=frequency or {"type": "daily", "count": 1},
                is_active=is_active,
                created_at=created,
                updated_at=created,
            )
            session.add(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
            return habit

    return _create_habit


@pytest.fixture
def log_factory(session_factory):
    """Factory for completions on given calendar days (bypassing the service)."""

    def _create_logs(habit: Habit, *days: date) -> list[CompletionLog]:
        rows = []
        with session_factory() as session:
            for day in days:
                log = CompletionLog(
                    habit_id=habit.id,
                    user_id=habit.user_id,
                    completed_at=at_noon(day),
                    completed_on=day,
                )
                session.add(log)
                rows.append(log)
            session.commit()
            for log in rows:
                session.refresh(log)
                session.expunge(log)
        return rows

    return _create_logs


def streak_days(length: int, *, ending: date = TODAY) -> list[date]:
    """``length`` consecutive days ending on ``ending``."""

    return [ending - timedelta(days=offset) for offset in range(length)]


# =============================================================================
# Repository / Service Fixtures
# =============================================================================


@pytest.fixture
def user_repo(session_factory):
    return SQLModelUserRepository(session_factory)


@pytest.fixture
def habit_repo(session_factory):
    return SQLModelHabitRepository(session_factory)


@pytest.fixture
def completion_repo(session_factory):
    return SQLModelCompletionRepository(session_factory)


@pytest.fixture
def preference_repo(session_factory):
    return SQLModelPreferenceRepository(session_factory)


@pytest.fixture
def achievement_repo(session_factory):
    return SQLModelAchievementRepository(session_factory)


@pytest.fixture
def habit_service(habit_repo, completion_repo, user_repo):
    return HabitService(habits=habit_repo, completions=completion_repo, users=user_repo)


@pytest.fixture
def outbox():
    return OutboxTransport()


@pytest.fixture
def make_dispatcher(user_repo, habit_repo, completion_repo, preference_repo, achievement_repo):
    """Build a dispatcher around any transport, with the clock pinned to ``TODAY``."""

    def _make(transport) -> NotificationDispatcher:
        return NotificationDispatcher(
            users=user_repo,
            habits=habit_repo,
            completions=completion_repo,
            preferences=preference_repo,
            achievements=achievement_repo,
            transport=transport,
            clock=lambda: at_noon(TODAY),
        )

    return _make


@pytest.fixture
def dispatcher(make_dispatcher, outbox):
    return make_dispatcher(outbox)


# =============================================================================
# Flask Fixtures
# =============================================================================


@pytest.fixture()
def app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("HABITFLOW_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("HABITFLOW_DATABASE_URL", f"sqlite:///{tmp_path / 'app.db'}")
    monkeypatch.setenv("HABITFLOW_SERVICE_API_KEY", "test-service-key")
    monkeypatch.setenv("HABITFLOW_SECRET_KEY", "test-secret")

    set_async_execution(False)
    clear_jobs()

    app = create_app(config=TestConfig())
    yield app

    set_async_execution(True)
    clear_jobs()


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture()
def app_outbox(app) -> OutboxTransport:
    return app.extensions["habitflow"].transport


@pytest.fixture()
def register(client):
    """Register a user through the API and return ``(user, headers)``."""

    def _register(email: str = "alice@example.com", name: str | None = "Alice", tz: str = "UTC"):
        response = client.post(
            "/api/auth/register",
            json={"email": email, "password": "correct-horse", "name": name, "timezone": tz},
        )
        assert response.status_code == 201, response.get_json()
        data = response.get_json()["data"]
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _register


@pytest.fixture()
def auth_headers(register):
    _, headers = register()
    return headers


@pytest.fixture()
def service_headers():
    return {"Authorization": "Bearer test-service-key"}
