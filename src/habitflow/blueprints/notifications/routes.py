"""Notification preferences, single sends, fan-out triggers and job status."""

from __future__ import annotations

from flask import g

from ...errors import NotFound, TransportError, ValidationError
from ...extensions import get_context
from ...services import jobs
from ...services.notifications import DispatchResult, NotificationType
from ..api import login_required, parse_payload, service_required, success, user_or_service
from . import bp
from .forms import PreferenceForm, SendForm, TriggerForm


def _single_response(result: DispatchResult):
    if result.failed:
        raise TransportError(result.error, details=result.to_dict())
    if result.skipped:
        return success(result.to_dict(), message=f"Notification skipped: {result.reason}")
    return success(result.to_dict(), message="Email sent successfully")


@bp.get("/user/notifications")
@login_required
def get_preferences():
    return success(get_context().preference_repo.get(g.user_id).to_dict())


@bp.put("/user/notifications")
@login_required
def update_preferences():
    form = parse_payload(PreferenceForm)
    prefs = get_context().preference_repo.upsert(g.user_id, **form.model_dump())
    return success(prefs.to_dict(), message="Notification settings updated")


@bp.post("/emails/<string:event>")
@user_or_service
def send_email(event: str):
    """Send one notification to the caller (or, for service callers, to ``user_id``)."""

    kind = NotificationType.parse(event)
    form = parse_payload(SendForm)
    if g.is_service:
        if form.user_id is None:
            raise ValidationError("user_id is required")
        user_id = form.user_id
    else:
        user_id = g.user_id
    result = get_context().dispatcher.dispatch(kind, user_id, form.data)
    return _single_response(result)


@bp.post("/notifications/trigger")
@service_required
def trigger():
    """Dispatch to one user, or fan out to every eligible user."""

    form = parse_payload(TriggerForm)
    kind = NotificationType.parse(form.type)
    dispatcher = get_context().dispatcher

    if form.user_id is not None:
        return _single_response(dispatcher.dispatch(kind, form.user_id, form.data))

    if form.background:
        job = jobs.enqueue(
            f"notify:{kind.value}",
            dispatcher.dispatch_all,
            metadata={"type": kind.value},
            event=kind,
            data=form.data,
        )
        return success({"job_id": job.id, "status": job.status.value}, message="Fan-out queued", status=202)

    summary = dispatcher.dispatch_all(kind, form.data)
    return success(summary.to_dict(), message=summary.message)


@bp.get("/notifications/jobs/<string:job_id>")
@service_required
def job_status(job_id: str):
    job = jobs.get_job(job_id)
    if job is None:
        raise NotFound("Job not found")
    return success(job)
