"""Background task scheduler for periodic notification runs."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.cron import CronTrigger

from .models.notification import NotificationPreference
from .models.user import User
from .services.notifications import NotificationType
from .timeutil import resolve_timezone, utcnow

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger("habitflow.scheduler")


def reminder_due(
    user: User,
    prefs: NotificationPreference,
    *,
    now: datetime,
    default_timezone: str = "UTC",
) -> bool:
    """True when ``now`` falls in the hour of the user's reminder time."""

    try:
        hour = int((prefs.reminder_time or "").split(":", 1)[0])
    except ValueError:
        return False
    local = now.astimezone(resolve_timezone(user.timezone, default_timezone))
    return local.hour == hour


class BackgroundScheduler:
    """Runs the reminder, weekly summary and achievement fan-outs."""

    def __init__(self, ctx: AppContext, *, clock: Callable[[], datetime] = utcnow):
        """Initialize the scheduler with app context.

        Args:
            ctx: Application context with the dispatcher and config
            clock: Source of the current instant (tests pin it)
        """
        self.ctx = ctx
        self.clock = clock
        self.scheduler: Optional[APScheduler] = None

    def start(self) -> None:
        """Start the background scheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        self.scheduler = APScheduler(timezone="UTC")

        # Reminder emails go out at each user's own reminder hour
        self.scheduler.add_job(
            func=self.run_daily_reminders,
            trigger=CronTrigger(minute=0),
            id="daily_reminder",
            name="Daily Reminder Emails",
            replace_existing=True,
        )
        self.scheduler.add_job(
            func=self.run_weekly_summaries,
            trigger=CronTrigger(day_of_week="mon", hour=8, minute=0),
            id="weekly_summary",
            name="Weekly Summary Emails",
            replace_existing=True,
        )
        self.scheduler.add_job(
            func=self.run_achievement_alerts,
            trigger=CronTrigger(hour=21, minute=0),
            id="achievement_alert",
            name="Achievement Alerts",
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info("Background scheduler started")

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def job_ids(self) -> list[str]:
        if self.scheduler is None:
            return []
        return [job.id for job in self.scheduler.get_jobs()]

    def run_daily_reminders(self) -> None:
        now = self.clock()
        default_tz = self.ctx.config.DEFAULT_TIMEZONE
        self._fan_out(
            NotificationType.DAILY_REMINDER,
            only=lambda user, prefs: reminder_due(user, prefs, now=now, default_timezone=default_tz),
        )

    def run_weekly_summaries(self) -> None:
        self._fan_out(NotificationType.WEEKLY_SUMMARY)

    def run_achievement_alerts(self) -> None:
        self._fan_out(NotificationType.ACHIEVEMENT_ALERT)

    def _fan_out(self, event: NotificationType, **kwargs) -> None:
        try:
            summary = self.ctx.dispatcher.dispatch_all(event, **kwargs)
        except Exception as exc:
            logger.error(f"Scheduled {event.value} run failed: {exc}", exc_info=True)
            return
        logger.info(
            f"Scheduled {event.value} run finished",
            extra={"sent": summary.sent, "failed": summary.failed, "skipped": summary.skipped},
        )


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> BackgroundScheduler:
    """Create and optionally start a background scheduler.

    Args:
        ctx: Application context
        auto_start: Whether to start the scheduler immediately

    Returns:
        BackgroundScheduler instance
    """
    scheduler = BackgroundScheduler(ctx)
    if auto_start:
        scheduler.start()
    return scheduler
