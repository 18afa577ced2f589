"""User lookups used by auth and the notification fan-out."""

from __future__ import annotations

from typing import Callable, Optional

from sqlmodel import Session, select

from ...models.user import User


class SQLModelUserRepository:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, user_id: int) -> Optional[User]:
        with self.session_factory() as session:
            user = session.get(User, user_id)
            if user:
                session.expunge(user)
            return user

    def get_by_email(self, email: str) -> Optional[User]:
        with self.session_factory() as session:
            user = session.exec(select(User).where(User.email == email.strip().lower())).first()
            if user:
                session.expunge(user)
            return user

    def list_all(self) -> list[User]:
        """Return every user ordered by id (stable fan-out order)."""
        with self.session_factory() as session:
            users = list(session.exec(select(User).order_by(User.id)).all())  # type: ignore[arg-type]
            session.expunge_all()
            return users


__all__ = ["SQLModelUserRepository"]
