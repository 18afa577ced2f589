"""Shared helpers for the JSON API: envelope, auth guards, payload parsing."""

from __future__ import annotations

from datetime import date
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from flask import Flask, g, jsonify, request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from ..errors import HabitFlowError, Unauthorized, ValidationError
from ..extensions import get_context
from ..logging_config import get_logger
from ..services.auth import is_service_key, verify_token

logger = get_logger("api")

FormT = TypeVar("FormT", bound=BaseModel)


def success(data: Any = None, *, message: str | None = None, status: int = 200):
    payload: dict[str, Any] = {"success": True}
    if data is not None:
        payload["data"] = data
    if message:
        payload["message"] = message
    return jsonify(payload), status


def validation_errors(exc: PydanticValidationError) -> dict[str, list[str]]:
    """Group pydantic errors by top-level field name."""

    structured: dict[str, list[str]] = {}
    for error in exc.errors(include_url=False):
        loc = error.get("loc", ())
        key = str(loc[0]) if loc else "__root__"
        structured.setdefault(key, []).append(error.get("msg", "Invalid value"))
    return structured


def json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def parse_payload(form_cls: type[FormT], data: dict[str, Any] | None = None) -> FormT:
    """Validate ``data`` (default: the JSON body) against ``form_cls``."""

    try:
        return form_cls.model_validate(json_body() if data is None else data)
    except PydanticValidationError as exc:
        errors = validation_errors(exc)
        field, messages = next(iter(errors.items()))
        raise ValidationError(f"{field}: {messages[0]}", details=errors) from None


def int_arg(name: str, default: Optional[int] = None, *, minimum: int = 1, maximum: int | None = None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None
    if value < minimum or (maximum is not None and value > maximum):
        raise ValidationError(f"{name} is out of range")
    return value


def date_arg(name: str) -> Optional[date]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise ValidationError(f"{name} must be an ISO date (YYYY-MM-DD)") from None


def bool_arg(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in {"1", "true", "yes", "on"}


# Authentication ---------------------------------------------------------


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _authenticate() -> None:
    token = _bearer_token()
    if token is None:
        raise Unauthorized("Missing authorization header")
    ctx = get_context()
    if is_service_key(token, ctx.config):
        g.is_service = True
        g.user_id = None
        return
    user_id = verify_token(token, ctx.config)
    if ctx.user_repo.get(user_id) is None:
        raise Unauthorized("Invalid token")
    g.is_service = False
    g.user_id = user_id


def login_required(view: Callable) -> Callable:
    """Require a user token; the view acts on ``g.user_id`` only."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        _authenticate()
        if g.is_service:
            raise Unauthorized("User token required")
        return view(*args, **kwargs)

    return wrapper


def service_required(view: Callable) -> Callable:
    @wraps(view)
    def wrapper(*args, **kwargs):
        _authenticate()
        if not g.is_service:
            raise Unauthorized("Service key required")
        return view(*args, **kwargs)

    return wrapper


def user_or_service(view: Callable) -> Callable:
    """Accept either; only service callers may name another ``user_id``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        _authenticate()
        return view(*args, **kwargs)

    return wrapper


# Error handlers ---------------------------------------------------------


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HabitFlowError)
    def _handle_domain_error(exc: HabitFlowError):
        if exc.status_code >= 500:
            logger.error("Request failed", extra={"path": request.path, "error": exc.message})
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "error": exc.description or exc.name}), exc.code or 500

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        logger.exception("Unhandled error", extra={"path": request.path, "method": request.method})
        return jsonify({"success": False, "error": "Internal server error"}), 500


__all__ = [
    "bool_arg",
    "date_arg",
    "int_arg",
    "json_body",
    "login_required",
    "parse_payload",
    "register_error_handlers",
    "service_required",
    "success",
    "user_or_service",
    "validation_errors",
]
