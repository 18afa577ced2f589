"""Habit routes."""

from __future__ import annotations

from flask import g

from ...extensions import get_context
from ..api import bool_arg, int_arg, login_required, parse_payload, success
from . import bp
from .forms import HabitForm, HabitUpdateForm


@bp.get("")
@login_required
def list_habits():
    """Return the caller's active habits, newest first."""

    habits = get_context().habits.list_active(g.user_id)
    return success([habit.to_dict() for habit in habits])


@bp.post("")
@login_required
def create_habit():
    form = parse_payload(HabitForm)
    habit = get_context().habits.create(g.user_id, **form.to_fields())
    return success(habit.to_dict(), message="Habit created successfully", status=201)


@bp.get("/<int:habit_id>")
@login_required
def get_habit(habit_id: int):
    """Habit fields plus streak summary and recent logs."""

    window = int_arg("window_days", 30, maximum=366)
    return success(get_context().habits.detail(habit_id, g.user_id, window_days=window))


@bp.put("/<int:habit_id>")
@login_required
def update_habit(habit_id: int):
    form = parse_payload(HabitUpdateForm)
    habit = get_context().habits.update(habit_id, g.user_id, form.changes())
    return success(habit.to_dict(), message="Habit updated successfully")


@bp.delete("/<int:habit_id>")
@login_required
def delete_habit(habit_id: int):
    hard = bool_arg("hard")
    get_context().habits.remove(habit_id, g.user_id, hard=hard)
    return success(message="Habit deleted successfully" if hard else "Habit archived successfully")
