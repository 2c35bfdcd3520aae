"""
Application configuration.
This module defines the configuration settings for the canvassing service, including database connection, secret key,
logging and workflow thresholds. It uses environment variables for sensitive information and defaults for development.
In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'canvassing.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for browser forms (JSON API blueprints are exempt)
    WTF_CSRF_ENABLED = True

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_JSON = _env_flag("LOG_JSON")
    LOG_FILE = os.environ.get("LOG_FILE") or None

    # Workflow
    HIGH_VALUE_THRESHOLD = int(os.environ.get("HIGH_VALUE_THRESHOLD", "10000"))
    CANVASS_RETURN_WINDOW_DAYS = int(os.environ.get("CANVASS_RETURN_WINDOW_DAYS", "7"))
    # Off by default: any BAC user may sign on behalf of any roster entry.
    CANVASS_ENFORCE_SIGNER_IDENTITY = _env_flag("CANVASS_ENFORCE_SIGNER_IDENTITY")

    REQUESTS_PAGE_SIZE = 7

    APP_NAME = "PR Canvassing"


class TestingConfig(Config):
    """In-memory database, no CSRF."""

    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "WARNING"
    LOG_JSON = False
