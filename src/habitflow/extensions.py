"""Flask wiring for the application context."""

from __future__ import annotations

from flask import Flask, current_app

from .context import AppContext

EXTENSION_KEY = "habitflow"


def init_extensions(app: Flask, ctx: AppContext) -> None:
    """Attach ``ctx`` to the app so views can reach repositories and services."""

    app.extensions[EXTENSION_KEY] = ctx
    app.config["HABITFLOW_CONFIG"] = ctx.config


def get_context() -> AppContext:
    """Return the context of the app handling the current request."""

    try:
        return current_app.extensions[EXTENSION_KEY]
    except KeyError:  # pragma: no cover - only when the factory was bypassed
        raise RuntimeError("HabitFlow context not initialized") from None


__all__ = ["EXTENSION_KEY", "get_context", "init_extensions"]
