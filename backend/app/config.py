# backend/app/config.py
from __future__ import annotations
import os


def _engine_options(database_uri: str, timeout_seconds: float) -> dict:
    # Driver-level timeouts so a busy or unreachable store fails instead of hanging.
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    if database_uri.startswith("postgresql"):
        return {
            "pool_pre_ping": True,
            "pool_timeout": timeout_seconds,
            "connect_args": {"connect_timeout": int(timeout_seconds)},
        }
    return {"pool_pre_ping": True, "pool_timeout": timeout_seconds}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/wastedesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///wastedesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    STORE_TIMEOUT_SECONDS = float(os.environ.get("STORE_TIMEOUT_SECONDS", "10"))
    LOCK_TIMEOUT_SECONDS = float(os.environ.get("LOCK_TIMEOUT_SECONDS", "10"))

    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI, STORE_TIMEOUT_SECONDS)

    # Session cookie written by the login frontend
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "auth-storage")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def engine_options_for(database_uri: str, timeout_seconds: float) -> dict:
    """Engine options for a URI chosen after import (tests, CLI overrides)."""
    return _engine_options(database_uri, timeout_seconds)
