"""
Centralized configuration for all environments.

Select a config by setting:
  APP_CONFIG=plantcare.config.DevConfig      # local dev
  APP_CONFIG=plantcare.config.ProdConfig     # production (default if unset)
  APP_CONFIG=plantcare.config.TestConfig     # pytest

Notes:
- SECRET_KEY is read from FLASK_SECRET_KEY
- CARE_TIMEZONE pins the single reference timezone used for "today"
- Rate limiting uses Flask-Limiter v3 keys (RATELIMIT_*).
"""

from __future__ import annotations
import os
import secrets
from datetime import timedelta


class BaseConfig:
    # Generate a random key if env var is missing so dev/test never runs with an
    # empty string (production enforces a real key at startup)
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    # Session configuration
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)
    SESSION_COOKIE_SECURE = True  # overridden in dev
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Supabase (Database + Auth)
    SUPABASE_URL = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
    SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # Care schedule
    # All server-side "today" computations use this zone. Client dates are
    # treated as opaque calendar dates and never converted.
    CARE_TIMEZONE = os.getenv("CARE_TIMEZONE", "America/Guatemala")
    DEFAULT_FREQUENCY_DAYS = int(os.getenv("DEFAULT_FREQUENCY_DAYS", "7"))

    # Daily materialization job (APScheduler cron, in CARE_TIMEZONE)
    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    MATERIALIZE_JOB_HOUR = int(os.getenv("MATERIALIZE_JOB_HOUR", "0"))
    MATERIALIZE_JOB_MINUTE = int(os.getenv("MATERIALIZE_JOB_MINUTE", "5"))

    # Flask-Limiter v3
    RATELIMIT_ENABLED = os.getenv("RATELIMIT_ENABLED", "true").lower() == "true"
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "40 per minute; 2000 per day")
    COMPLETE_RATE_LIMIT = "30 per minute"
    SEED_RATE_LIMIT = "20 per minute"

    # Misc
    PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")


class ProdConfig(BaseConfig):
    """Production settings (selected by default if APP_CONFIG is unset)."""
    pass


class DevConfig(BaseConfig):
    """Developer-friendly settings."""
    ENV = "development"
    DEBUG = True
    PREFERRED_URL_SCHEME = "http"
    # Allow cookies over HTTP in dev
    SESSION_COOKIE_SECURE = False


class TestConfig(BaseConfig):
    """CI/pytest settings."""
    TESTING = True
    DEBUG = True
    # Usually disable the limiter in tests to avoid flakiness
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    WTF_CSRF_ENABLED = False
    SUPABASE_URL = ""
    SUPABASE_ANON_KEY = ""
    SUPABASE_SERVICE_ROLE_KEY = ""
