"""Notification dispatch: decide, collect, render and send one email per user.

Each attempt walks a small state machine::

    requested -> filtering -> skipped
                           -> collecting -> skipped
                                         -> sending -> sent | failed

``dispatch`` runs a single attempt for one user. ``dispatch_all`` runs one
independent attempt per eligible user and tallies the outcomes; a failure for
one user never stops the others and nothing is retried.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined

from ..errors import NotFound, TransportError, ValidationError
from ..domain.repositories import (
    AchievementRepository,
    CompletionRepository,
    HabitRepository,
    PreferenceRepository,
    UserRepository,
)
from ..logging_config import get_logger
from ..models.habit import CompletionLog, Habit
from ..models.notification import NotificationPreference
from ..models.user import User
from ..timeutil import resolve_timezone, today_in, utcnow
from . import aggregation, streaks
from .email import EmailTransport

logger = get_logger("services.notifications")

GENERIC_NAME = "there"


class NotificationType(str, Enum):
    WELCOME = "welcome"
    DAILY_REMINDER = "daily_reminder"
    WEEKLY_SUMMARY = "weekly_summary"
    ACHIEVEMENT_ALERT = "achievement_alert"

    @classmethod
    def parse(cls, value: "str | NotificationType") -> "NotificationType":
        """Accept enum members, ``snake_case`` or ``kebab-case`` names."""

        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(f"Unknown notification type: {value}") from None

    @property
    def preference_flag(self) -> Optional[str]:
        return _PREFERENCE_FLAGS[self]


_PREFERENCE_FLAGS: dict[NotificationType, Optional[str]] = {
    NotificationType.WELCOME: None,
    NotificationType.DAILY_REMINDER: "daily_reminder",
    NotificationType.WEEKLY_SUMMARY: "weekly_summary",
    NotificationType.ACHIEVEMENT_ALERT: "achievement_alerts",
}

SUBJECTS: dict[NotificationType, str] = {
    NotificationType.WELCOME: "Welcome to HabitFlow!",
    NotificationType.DAILY_REMINDER: "🌅 {name}, a new day to build your habits",
    NotificationType.WEEKLY_SUMMARY: "📅 {name}, your weekly habit report is here",
    NotificationType.ACHIEVEMENT_ALERT: "🎉 {name}, you reached a new milestone!",
}


class DispatchState(str, Enum):
    REQUESTED = "requested"
    FILTERING = "filtering"
    COLLECTING = "collecting"
    SENDING = "sending"
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


TERMINAL_STATES = frozenset({DispatchState.SENT, DispatchState.SKIPPED, DispatchState.FAILED})


@dataclass
class DispatchResult:
    """Outcome of one notification attempt for one user."""

    user_id: int
    event: NotificationType
    state: DispatchState = DispatchState.REQUESTED
    history: list[DispatchState] = field(default_factory=lambda: [DispatchState.REQUESTED])
    reason: Optional[str] = None
    error: Optional[str] = None
    message_id: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)

    def advance(self, state: DispatchState, *, reason: str | None = None) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Attempt already finished as {self.state.value}")
        self.state = state
        self.history.append(state)
        if reason is not None:
            self.reason = reason

    @property
    def sent(self) -> bool:
        return self.state is DispatchState.SENT

    @property
    def skipped(self) -> bool:
        return self.state is DispatchState.SKIPPED

    @property
    def failed(self) -> bool:
        return self.state is DispatchState.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "type": self.event.value,
            "state": self.state.value,
            "history": [state.value for state in self.history],
            "reason": self.reason,
            "error": self.error,
            "message_id": self.message_id,
            "data": self.data,
        }


@dataclass
class FanOutSummary:
    event: NotificationType
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    results: list[DispatchResult] = field(default_factory=list)

    def record(self, result: DispatchResult) -> None:
        self.results.append(result)
        if result.sent:
            self.sent += 1
        elif result.skipped:
            self.skipped += 1
        else:
            self.failed += 1
            self.errors.append({"user_id": result.user_id, "error": result.error})

    @property
    def message(self) -> str:
        if not self.results:
            return "No eligible users found"
        return f"Notifications sent to {self.sent} users, {self.failed} failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event.value,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": self.errors,
            "message": self.message,
        }


@dataclass(slots=True)
class EmailMessage:
    subject: str
    body: str


class EmailRenderer:
    """Render subjects and bodies from the packaged Jinja2 templates."""

    def __init__(self, environment: Environment | None = None) -> None:
        self.environment = environment or Environment(
            loader=PackageLoader("habitflow", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def render(self, event: NotificationType, context: dict[str, Any]) -> EmailMessage:
        template = self.environment.get_template(f"emails/{event.value}.txt")
        subject = SUBJECTS[event].format(name=context.get("name", GENERIC_NAME))
        return EmailMessage(subject=subject, body=template.render(**context))


def display_name(user: User) -> str:
    name = (user.display_name or "").strip()
    return name or GENERIC_NAME


@dataclass
class _Collected:
    """Context gathered for a template, or the reason there is nothing to send."""

    context: dict[str, Any] = field(default_factory=dict)
    skip_reason: Optional[str] = None
    grants: list[dict[str, Any]] = field(default_factory=list)


class NotificationDispatcher:
    """Send notification emails to users according to their preferences."""

    def __init__(
        self,
        *,
        users: UserRepository,
        habits: HabitRepository,
        completions: CompletionRepository,
        preferences: PreferenceRepository,
        achievements: AchievementRepository,
        transport: EmailTransport,
        renderer: EmailRenderer | None = None,
        default_timezone: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.users = users
        self.habits = habits
        self.completions = completions
        self.preferences = preferences
        self.achievements = achievements
        self.transport = transport
        self.renderer = renderer or EmailRenderer()
        self.default_timezone = default_timezone
        self.clock = clock

    # Public API ---------------------------------------------------------

    def dispatch(
        self,
        event: "str | NotificationType",
        user_id: int,
        data: dict[str, Any] | None = None,
        *,
        today: date | None = None,
    ) -> DispatchResult:
        """Run one attempt for ``user_id``.

        Transport failures end in ``failed`` with the transport message on
        ``result.error``; any other error propagates.
        """

        kind = NotificationType.parse(event)
        user = self.users.get(user_id)
        if user is None:
            raise NotFound("User not found")
        result = DispatchResult(user_id=user_id, event=kind)
        self._run(result, user, data or {}, today)
        return result

    def dispatch_all(
        self,
        event: "str | NotificationType",
        data: dict[str, Any] | None = None,
        *,
        today: date | None = None,
        only: Callable[[User, NotificationPreference], bool] | None = None,
    ) -> FanOutSummary:
        """Fan out ``event`` to every eligible user.

        ``only`` narrows the audience further (the scheduler uses it to pick
        users whose reminder hour has come).
        """

        kind = NotificationType.parse(event)
        summary = FanOutSummary(event=kind)
        for user in self.eligible_users(kind):
            result = DispatchResult(user_id=user.id, event=kind)
            try:
                prefs = self.preferences.get(user.id)
                if only is not None and not only(user, prefs):
                    continue
                self._run(result, user, data or {}, today, prefs=prefs)
            except Exception as exc:
                logger.exception(
                    "Notification attempt crashed",
                    extra={"user_id": user.id, "type": kind.value},
                )
                result.error = str(exc) or exc.__class__.__name__
                if result.state not in TERMINAL_STATES:
                    result.advance(DispatchState.FAILED)
            summary.record(result)
        logger.info(
            "Fan-out finished",
            extra={
                "type": kind.value,
                "sent": summary.sent,
                "failed": summary.failed,
                "skipped": summary.skipped,
            },
        )
        return summary

    def eligible_users(self, event: NotificationType) -> Iterable[User]:
        """Users whose preference for ``event`` is on, or who never set one."""

        flag = event.preference_flag
        opted_out = self.preferences.opted_out_user_ids(flag) if flag else set()
        for user in self.users.list_all():
            if user.id in opted_out:
                continue
            yield user

    def achievement_candidates(self, user_id: int, *, today: date | None = None) -> list[dict]:
        """Milestones reached today that have not been announced yet."""

        user = self.users.get(user_id)
        if user is None:
            raise NotFound("User not found")
        tz = self._timezone(user)
        return self._achievements(user, tz, today or self._today(tz))

    # Attempt ------------------------------------------------------------

    def _run(
        self,
        result: DispatchResult,
        user: User,
        data: dict[str, Any],
        today: date | None,
        *,
        prefs: NotificationPreference | None = None,
    ) -> None:
        event = result.event
        result.advance(DispatchState.FILTERING)
        prefs = prefs or self.preferences.get(user.id)
        if not self._allowed(event, prefs):
            result.advance(DispatchState.SKIPPED, reason="Disabled by user preferences")
            logger.info(
                "Notification skipped",
                extra={"user_id": user.id, "type": event.value, "reason": result.reason},
            )
            return

        result.advance(DispatchState.COLLECTING)
        tz = self._timezone(user)
        day = today or self._today(tz)
        collected = self._collect(event, user, prefs, tz, day, data)
        if collected.skip_reason:
            result.advance(DispatchState.SKIPPED, reason=collected.skip_reason)
            logger.info(
                "Notification skipped",
                extra={"user_id": user.id, "type": event.value, "reason": result.reason},
            )
            return

        message = self.renderer.render(event, collected.context)
        result.advance(DispatchState.SENDING)
        try:
            result.message_id = self.transport.send(user.email, message.subject, message.body)
        except TransportError as exc:
            result.error = exc.message
            result.advance(DispatchState.FAILED)
            logger.warning(
                "Notification delivery failed",
                extra={"user_id": user.id, "type": event.value, "error": exc.message},
            )
            return

        result.advance(DispatchState.SENT)
        for grant in collected.grants:
            self.achievements.grant(
                user_id=user.id,
                habit_id=grant["habit_id"],
                milestone=grant["milestone"],
                streak_start=date.fromisoformat(grant["streak_start"]),
            )
        if collected.grants:
            result.data["achievements"] = collected.grants
        logger.info(
            "Notification sent",
            extra={"user_id": user.id, "type": event.value, "message_id": result.message_id},
        )

    @staticmethod
    def _allowed(event: NotificationType, prefs: NotificationPreference | None) -> bool:
        flag = event.preference_flag
        if flag is None or prefs is None:
            return True
        return bool(getattr(prefs, flag))

    def _timezone(self, user: User) -> tzinfo:
        return resolve_timezone(user.timezone, self.default_timezone)

    def _today(self, tz: tzinfo) -> date:
        return today_in(tz, now=self.clock())

    # Collectors ---------------------------------------------------------

    def _collect(
        self,
        event: NotificationType,
        user: User,
        prefs: NotificationPreference,
        tz: tzinfo,
        today: date,
        data: dict[str, Any],
    ) -> _Collected:
        name = str(data.get("name") or "").strip() or display_name(user)
        base = {"name": name, "today": today}
        if event is NotificationType.WELCOME:
            base["reminder_time"] = prefs.reminder_time
            return _Collected(context=base)
        if event is NotificationType.DAILY_REMINDER:
            return self._collect_daily(user, tz, today, base)
        if event is NotificationType.WEEKLY_SUMMARY:
            return self._collect_weekly(user, tz, today, base)
        return self._collect_achievements(user, tz, today, base)

    def _history(self, user: User) -> tuple[list[Habit], dict[int, set[date]], list[CompletionLog]]:
        habits = self.habits.list_active(user_id=user.id)
        logs = self.completions.list_for_habits([habit.id for habit in habits], user_id=user.id)
        by_habit: dict[int, set[date]] = {habit.id: set() for habit in habits}
        for log in logs:
            by_habit.setdefault(log.habit_id, set()).add(log.completed_on)
        return habits, by_habit, logs

    def _collect_daily(self, user: User, tz: tzinfo, today: date, base: dict) -> _Collected:
        habits, by_habit, _ = self._history(user)
        if not habits:
            return _Collected(skip_reason="No active habits")
        scheduled = [habit for habit in habits if aggregation.is_scheduled(habit, today, tz)]
        if not scheduled:
            return _Collected(skip_reason="No habits scheduled today")

        items = []
        for habit in scheduled:
            days = by_habit.get(habit.id, set())
            items.append(
                {
                    "id": habit.id,
                    "name": habit.name,
                    "icon": habit.icon,
                    "streak": streaks.current_streak(days, today=today),
                    "completed": today in days,
                }
            )
        context = dict(base)
        context.update(
            habits=items,
            done=[item for item in items if item["completed"]],
            pending=[item for item in items if not item["completed"]],
        )
        return _Collected(context=context)

    def _collect_weekly(self, user: User, tz: tzinfo, today: date, base: dict) -> _Collected:
        habits, by_habit, logs = self._history(user)
        if not habits:
            return _Collected(skip_reason="No active habits")

        week_start = today - timedelta(days=6)
        week = [week_start + timedelta(days=offset) for offset in range(7)]
        items = []
        for habit in habits:
            days = by_habit.get(habit.id, set())
            eligible = [day for day in week if aggregation.is_scheduled(habit, day, tz)]
            items.append(
                {
                    "id": habit.id,
                    "name": habit.name,
                    "icon": habit.icon,
                    "completed": sum(1 for day in eligible if day in days),
                    "eligible": len(eligible),
                    "streak": streaks.current_streak(days, today=today),
                }
            )
        buckets = aggregation.day_buckets(habits, logs, today=today, days=7, tz=tz)
        total_completed = sum(bucket.completed for bucket in buckets)
        total_eligible = sum(bucket.total for bucket in buckets)
        context = dict(base)
        context.update(
            week_start=week_start,
            week_end=today,
            habits=items,
            days=[bucket.to_dict() for bucket in buckets],
            total_completed=total_completed,
            total_eligible=total_eligible,
            completion_rate=(total_completed / total_eligible * 100) if total_eligible else 0.0,
        )
        return _Collected(context=context)

    def _achievements(self, user: User, tz: tzinfo, today: date) -> list[dict]:
        habits, by_habit, _ = self._history(user)
        candidates = []
        for habit in habits:
            days = by_habit.get(habit.id, set())
            streak = streaks.current_streak(days, today=today)
            milestone = streaks.milestone_for(streak)
            if milestone is not None:
                candidates.append(
                    {
                        "habit_id": habit.id,
                        "name": habit.name,
                        "icon": habit.icon,
                        "milestone": milestone,
                        "streak_start": streaks.streak_start(days, today=today).isoformat(),
                    }
                )
        if not candidates:
            return []
        granted = self.achievements.granted_milestones(item["habit_id"] for item in candidates)
        return [
            item
            for item in candidates
            if (item["habit_id"], item["milestone"], date.fromisoformat(item["streak_start"]))
            not in granted
        ]

    def _collect_achievements(self, user: User, tz: tzinfo, today: date, base: dict) -> _Collected:
        fresh = self._achievements(user, tz, today)
        if not fresh:
            return _Collected(skip_reason="No new achievements")
        context = dict(base)
        context["achievements"] = fresh
        return _Collected(context=context, grants=fresh)


__all__ = [
    "DispatchResult",
    "DispatchState",
    "EmailMessage",
    "EmailRenderer",
    "FanOutSummary",
    "NotificationDispatcher",
    "NotificationType",
    "display_name",
]
