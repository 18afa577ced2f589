"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "HabitFlow"
    DB_FILENAME = "habitflow.db"
    DEBUG = False
    TESTING = False
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}
    EMAIL_BACKENDS = ("console", "resend", "outbox")

    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("HABITFLOW_SECRET_KEY", "replace-me")
        self.DEV_MODE = _env_bool("HABITFLOW_DEV_MODE", default=True)
        self.DATA_DIR = self._resolve_data_dir()
        self.DATABASE_URL = os.getenv("HABITFLOW_DATABASE_URL", self._build_sqlite_url())
        self.DEFAULT_TIMEZONE = os.getenv("HABITFLOW_DEFAULT_TIMEZONE", "UTC")
        self.TOKEN_TTL_HOURS = _env_int("HABITFLOW_TOKEN_TTL_HOURS", 24 * 30)
        self.SERVICE_API_KEY = os.getenv("HABITFLOW_SERVICE_API_KEY")
        self.EMAIL_BACKEND = os.getenv("HABITFLOW_EMAIL_BACKEND", "console").strip().lower()
        self.EMAIL_FROM = os.getenv("HABITFLOW_EMAIL_FROM", "HabitFlow <onboarding@resend.dev>")
        self.EMAIL_TIMEOUT = _env_int("HABITFLOW_EMAIL_TIMEOUT", 10)
        self.RESEND_API_KEY = os.getenv("RESEND_API_KEY")
        self.ENABLE_SCHEDULER = _env_bool("HABITFLOW_ENABLE_SCHEDULER", default=False)

        if not self.DEV_MODE and self.SECRET_KEY == "replace-me":
            raise ValueError("HABITFLOW_SECRET_KEY must be set in non-dev mode.")
        if self.EMAIL_BACKEND not in self.EMAIL_BACKENDS:
            raise ValueError(
                f"HABITFLOW_EMAIL_BACKEND must be one of {', '.join(self.EMAIL_BACKENDS)}"
            )
        if self.EMAIL_BACKEND == "resend" and not self.RESEND_API_KEY:
            raise ValueError("HABITFLOW_EMAIL_BACKEND=resend requires RESEND_API_KEY.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("HABITFLOW_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            return {"connect_args": {"check_same_thread": False}}
        return {"pool_pre_ping": True}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True


class TestConfig(BaseConfig):
    """Configuration for the test-suite: in-memory outbox and no scheduler."""

    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.EMAIL_BACKEND = "outbox"
        self.ENABLE_SCHEDULER = False
        self.SERVICE_API_KEY = self.SERVICE_API_KEY or "test-service-key"


class ProductionConfig(BaseConfig):
    """Production configuration; dev mode must be switched off via env."""


CONFIGS: dict[str, type[BaseConfig]] = {
    "development": DevConfig,
    "testing": TestConfig,
    "production": ProductionConfig,
}


def load_config(name: str | None = None) -> BaseConfig:
    """Instantiate the configuration registered under ``name``."""

    key = (name or os.getenv("HABITFLOW_ENV", "development")).lower()
    try:
        config_cls = CONFIGS[key]
    except KeyError as exc:
        raise ValueError(f"Unknown configuration: {key}") from exc
    return config_cls()
