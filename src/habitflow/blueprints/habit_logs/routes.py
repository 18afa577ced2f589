"""Completion log routes."""

from __future__ import annotations

from flask import g

from ...extensions import get_context
from ..api import date_arg, int_arg, login_required, parse_payload, success
from . import bp
from .forms import CompletionForm, CompletionUpdateForm

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


@bp.get("")
@login_required
def list_logs():
    """List the caller's completions, newest first."""

    logs = get_context().habits.list_completions(
        g.user_id,
        habit_id=int_arg("habit_id"),
        start=date_arg("start_date"),
        end=date_arg("end_date"),
        limit=int_arg("limit", DEFAULT_LIMIT, maximum=MAX_LIMIT),
    )
    return success([log.to_dict() for log in logs])


@bp.post("")
@login_required
def create_log():
    form = parse_payload(CompletionForm)
    log = get_context().habits.record_completion(
        form.habit_id, g.user_id, completed_at=form.completed_at, notes=form.notes
    )
    return success(log.to_dict(), message="Habit logged successfully", status=201)


@bp.get("/<int:log_id>")
@login_required
def get_log(log_id: int):
    return success(get_context().habits.get_completion(log_id, g.user_id).to_dict())


@bp.put("/<int:log_id>")
@login_required
def update_log(log_id: int):
    form = parse_payload(CompletionUpdateForm)
    log = get_context().habits.update_completion(
        log_id, g.user_id, completed_at=form.completed_at, notes=form.notes
    )
    return success(log.to_dict(), message="Log updated successfully")


@bp.delete("/<int:log_id>")
@login_required
def delete_log(log_id: int):
    get_context().habits.delete_completion(log_id, g.user_id)
    return success(message="Log deleted successfully")
