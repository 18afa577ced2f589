"""SQLModel implementation of the completion log."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ...errors import Conflict
from ...logging_config import get_logger
from ...models.habit import CompletionLog
from ...timeutil import utcnow

logger = get_logger("infra.completion")


class SQLModelCompletionRepository:
    """Completion log backed by the ``habit_log`` table.

    ``add`` checks for an existing entry before inserting; two concurrent
    inserts for the same habit and day can both pass that check, in which
    case the unique constraint rejects the second and it surfaces as
    ``Conflict`` exactly like the pre-check does.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, log_id: int, *, user_id: int) -> Optional[CompletionLog]:
        with self.session_factory() as session:
            obj = session.exec(
                select(CompletionLog).where(
                    CompletionLog.id == log_id, CompletionLog.user_id == user_id
                )
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_for_user(
        self,
        *,
        user_id: int,
        habit_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
        limit: int | None = None,
    ) -> list[CompletionLog]:
        """List completions newest first."""
        with self.session_factory() as session:
            statement = (
                select(CompletionLog)
                .where(CompletionLog.user_id == user_id)
                .order_by(CompletionLog.completed_at.desc())  # type: ignore[union-attr]
            )
            if habit_id is not None:
                statement = statement.where(CompletionLog.habit_id == habit_id)
            if start is not None:
                statement = statement.where(CompletionLog.completed_on >= start)
            if end is not None:
                statement = statement.where(CompletionLog.completed_on <= end)
            if limit is not None:
                statement = statement.limit(limit)
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_for_habits(
        self, habit_ids: list[int], *, user_id: int, since: date | None = None
    ) -> list[CompletionLog]:
        """Fetch every completion for the given habits, oldest first."""
        if not habit_ids:
            return []
        with self.session_factory() as session:
            statement = (
                select(CompletionLog)
                .where(CompletionLog.user_id == user_id)
                .where(CompletionLog.habit_id.in_(habit_ids))  # type: ignore[union-attr]
                .order_by(CompletionLog.completed_on)  # type: ignore[arg-type]
            )
            if since is not None:
                statement = statement.where(CompletionLog.completed_on >= since)
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def exists_on(self, habit_id: int, day: date, *, exclude_id: int | None = None) -> bool:
        with self.session_factory() as session:
            statement = select(CompletionLog.id).where(
                CompletionLog.habit_id == habit_id, CompletionLog.completed_on == day
            )
            if exclude_id is not None:
                statement = statement.where(CompletionLog.id != exclude_id)
            return session.exec(statement).first() is not None

    def add(self, log: CompletionLog) -> CompletionLog:
        """Insert a completion, rejecting a second entry for the same day."""
        if self.exists_on(log.habit_id, log.completed_on):
            raise Conflict()
        return self._write(log)

    def save(self, log: CompletionLog) -> CompletionLog:
        """Persist edits to an existing completion."""
        if self.exists_on(log.habit_id, log.completed_on, exclude_id=log.id):
            raise Conflict()
        log.updated_at = utcnow()
        return self._write(log)

    def _write(self, log: CompletionLog) -> CompletionLog:
        habit_id, day = log.habit_id, log.completed_on
        with self.session_factory() as session:
            try:
                log = session.merge(log)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                logger.info(
                    "Duplicate completion rejected by constraint",
                    extra={"habit_id": habit_id, "completed_on": str(day)},
                )
                raise Conflict() from exc
            session.refresh(log)
            session.expunge(log)
            return log

    def delete(self, log_id: int, *, user_id: int) -> bool:
        with self.session_factory() as session:
            log = session.exec(
                select(CompletionLog).where(
                    CompletionLog.id == log_id, CompletionLog.user_id == user_id
                )
            ).first()
            if log is None:
                return False
            session.delete(log)
            session.commit()
            return True


__all__ = ["SQLModelCompletionRepository"]
