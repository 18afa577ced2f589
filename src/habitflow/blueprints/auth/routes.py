"""Registration, login and profile routes."""

from __future__ import annotations

from flask import g

from ...errors import HabitFlowError, Unauthorized
from ...extensions import get_context
from ...logging_config import get_logger
from ...services import auth
from ...services.notifications import NotificationType
from ..api import login_required, parse_payload, success
from . import bp
from .forms import LoginForm, ProfileForm, RegisterForm

logger = get_logger("api.auth")


@bp.post("/register")
def register():
    """Create an account, return a token and send the welcome email."""

    form = parse_payload(RegisterForm)
    ctx = get_context()
    user = auth.create_user(
        email=form.email,
        password=form.password,
        display_name=form.name,
        timezone=form.timezone,
        session_factory=ctx.session_factory,
        default_timezone=ctx.config.DEFAULT_TIMEZONE,
    )

    # The account exists either way; a failed welcome email is only logged.
    try:
        result = ctx.dispatcher.dispatch(NotificationType.WELCOME, user.id)
        if result.failed:
            logger.warning("Welcome email failed", extra={"user_id": user.id, "error": result.error})
    except HabitFlowError as exc:
        logger.warning("Welcome email failed", extra={"user_id": user.id, "error": exc.message})

    token = auth.issue_token(user, ctx.config)
    return success(
        {"user": user.to_dict(), "token": token},
        message="Account created successfully",
        status=201,
    )


@bp.post("/login")
def login():
    form = parse_payload(LoginForm)
    ctx = get_context()
    user = auth.authenticate(
        email=form.email, password=form.password, session_factory=ctx.session_factory
    )
    if user is None:
        raise Unauthorized("Invalid email or password")
    return success({"user": user.to_dict(), "token": auth.issue_token(user, ctx.config)})


@bp.get("/me")
@login_required
def me():
    user = get_context().user_repo.get(g.user_id)
    return success(user.to_dict())


@bp.put("/me")
@login_required
def update_me():
    """Change display name and/or home timezone."""

    form = parse_payload(ProfileForm)
    user = auth.update_profile(
        user_id=g.user_id,
        session_factory=get_context().session_factory,
        display_name=form.name,
        timezone=form.timezone,
    )
    return success(user.to_dict(), message="Profile updated successfully")
