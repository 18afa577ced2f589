"""Flask CLI commands for HabitFlow."""

from __future__ import annotations

import click


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    @app.cli.command("habitflow-create-user")
    @click.argument("email")
    @click.password_option()
    @click.option("--name", default=None, help="Display name")
    @click.option("--timezone", default=None, help="IANA timezone, e.g. Europe/Berlin")
    def create_user_command(email: str, password: str, name: str | None, timezone: str | None) -> None:
        """Create a user account."""

        from .errors import ValidationError
        from .extensions import get_context
        from .services.auth import create_user

        ctx = get_context()
        try:
            user = create_user(
                email=email,
                password=password,
                display_name=name,
                timezone=timezone,
                session_factory=ctx.session_factory,
                default_timezone=ctx.config.DEFAULT_TIMEZONE,
            )
        except ValidationError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Created user #{user.id} <{user.email}>")

    @app.cli.command("habitflow-notify")
    @click.argument(
        "event",
        type=click.Choice(["welcome", "daily_reminder", "weekly_summary", "achievement_alert"]),
    )
    @click.option("--user-id", type=int, default=None, help="Send to one user instead of everyone")
    def notify_command(event: str, user_id: int | None) -> None:
        """Send a notification now (one user or fan-out)."""

        from .errors import HabitFlowError
        from .extensions import get_context

        dispatcher = get_context().dispatcher
        if user_id is not None:
            try:
                result = dispatcher.dispatch(event, user_id)
            except HabitFlowError as exc:
                raise click.ClickException(exc.message) from exc
            click.echo(f"{event} -> user #{user_id}: {result.state.value}")
            if result.reason:
                click.echo(f"  reason: {result.reason}")
            if result.error:
                raise click.ClickException(result.error)
            return

        summary = dispatcher.dispatch_all(event)
        click.echo(f"{event}: sent={summary.sent} failed={summary.failed} skipped={summary.skipped}")
        for error in summary.errors:
            click.echo(f"  user #{error['user_id']}: {error['error']}")
