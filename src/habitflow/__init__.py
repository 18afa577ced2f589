"""HabitFlow application factory."""

from __future__ import annotations

from importlib import import_module
from typing import Iterable, Optional

from flask import Flask

from . import cli as _cli
from .config import BaseConfig, load_config
from .services.email import EmailTransport


def _blueprint_paths() -> Iterable[str]:
    """Yield blueprint import paths registered on the app."""

    yield "habitflow.blueprints.auth"
    yield "habitflow.blueprints.habits"
    yield "habitflow.blueprints.habit_logs"
    yield "habitflow.blueprints.stats"
    yield "habitflow.blueprints.notifications"


def create_app(
    config_name: str | None = None,
    *,
    config: Optional[BaseConfig] = None,
    transport: Optional[EmailTransport] = None,
) -> Flask:
    """Create and configure the Flask application instance.

    ``config`` and ``transport`` override what ``config_name`` would select;
    tests use them to inject a prepared config and a fake email backend.
    """

    from .blueprints.api import register_error_handlers
    from .context import create_app_context
    from .extensions import init_extensions
    from .logging_config import init_request_logging, setup_logging
    from .scheduler import create_scheduler

    config_obj = config or load_config(config_name)
    app = Flask(__name__)
    app.config.from_object(config_obj)
    app.json.ensure_ascii = False

    setup_logging(config_obj)
    ctx = create_app_context(config_obj, transport=transport)
    init_extensions(app, ctx)
    register_error_handlers(app)
    init_request_logging(app)
    _register_blueprints(app)
    _cli.init_app(app)

    if config_obj.ENABLE_SCHEDULER:
        app.extensions["habitflow_scheduler"] = create_scheduler(ctx, auto_start=True)

    return app


def _register_blueprints(app: Flask) -> None:
    """Import and register all blueprints declared in `_blueprint_paths`."""

    for dotted_path in _blueprint_paths():
        module = import_module(dotted_path)
        blueprint = getattr(module, "bp")
        app.register_blueprint(blueprint)


__all__ = ["create_app"]
