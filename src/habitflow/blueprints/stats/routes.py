"""Statistics and achievements."""

from __future__ import annotations

from flask import g

from ...extensions import get_context
from ..api import int_arg, login_required, success
from . import bp

MAX_PERIOD_DAYS = 366


@bp.get("/stats")
@login_required
def stats():
    """Dashboard figures for the last ``period`` days (default 30)."""

    payload = get_context().habits.stats(
        g.user_id,
        period=int_arg("period", 30, maximum=MAX_PERIOD_DAYS),
        habit_id=int_arg("habit_id"),
    )
    return success(payload)


@bp.get("/achievements")
@login_required
def achievements():
    """Milestones reached today that have not been announced yet."""

    return success(get_context().dispatcher.achievement_candidates(g.user_id))
