"""
Application factory and global configuration.

Creates the Flask app, applies security headers, configures rate limiting
and CSRF, registers blueprints and error handlers, and starts the daily
task materialization job. Startup/config concerns stay here; domain logic
lives in plantcare.services.
"""

from __future__ import annotations
import os
from flask import Flask, Response
from flask_wtf.csrf import CSRFProtect
from dotenv import load_dotenv
from .extensions import limiter
from .routes.reminders import reminders_bp
from .routes.tasks import tasks_bp
from .services import supabase_client
from .utils.errors import register_error_handlers


def _validate_production_security(app: Flask, cfg_path: str) -> None:
    """
    Refuse to start a production app with insecure settings.

    Checks secure cookies, a strong SECRET_KEY, DEBUG off and https URLs.
    Skipped for non-production configs and tests.

    Raises:
        RuntimeError: listing every failed check
    """
    if "ProdConfig" not in cfg_path or app.config.get("TESTING", False):
        return

    errors = []

    if not app.config.get("SESSION_COOKIE_SECURE", False):
        errors.append("SESSION_COOKIE_SECURE must be True in production.")

    secret_key = app.config.get("SECRET_KEY", "")
    if not os.getenv("FLASK_SECRET_KEY"):
        errors.append("FLASK_SECRET_KEY is not set.")
    elif len(secret_key) < 32:
        errors.append(f"SECRET_KEY is too weak ({len(secret_key)} chars). Use at least 32 characters.")

    if app.config.get("DEBUG", False):
        errors.append("DEBUG must be False in production.")

    if app.config.get("PREFERRED_URL_SCHEME", "http") != "https":
        errors.append("PREFERRED_URL_SCHEME should be 'https' in production.")

    if errors:
        raise RuntimeError(
            "Production security validation failed:\n" + "\n".join(f"  * {err}" for err in errors)
        )

    app.logger.info("[OK] Production security validation passed")


def _start_scheduler(app: Flask) -> None:
    """Run the task materialization job daily in the reference timezone."""
    try:
        from apscheduler.schedulers.background import BackgroundScheduler
        from plantcare.services.task_history import run_daily_materialization

        scheduler = BackgroundScheduler(timezone=app.config["CARE_TIMEZONE"])

        # APScheduler runs jobs in background threads without app context
        def run_materialization():
            with app.app_context():
                run_daily_materialization()

        hour = app.config.get("MATERIALIZE_JOB_HOUR", 0)
        minute = app.config.get("MATERIALIZE_JOB_MINUTE", 5)
        scheduler.add_job(
            func=run_materialization,
            trigger="cron",
            hour=hour,
            minute=minute,
            id="daily_task_materialization",
            name="Daily Care Task Materialization",
            replace_existing=True,
        )

        scheduler.start()
        app.logger.info(
            f"[Scheduler] Daily task materialization scheduled for "
            f"{hour:02d}:{minute:02d} {app.config['CARE_TIMEZONE']}"
        )

        import atexit
        atexit.register(lambda: scheduler.shutdown())

    except Exception as e:
        app.logger.warning(f"[Scheduler] Failed to initialize materialization scheduler: {e}")


def create_app(config_path: str | None = None) -> Flask:
    # override=False so production env vars are not overwritten by a stale .env file
    load_dotenv(override=False)

    app = Flask(__name__)

    # Allow APP_CONFIG to override (e.g., plantcare.config.DevConfig)
    cfg_path = config_path or os.getenv("APP_CONFIG", "plantcare.config.ProdConfig")
    try:
        app.config.from_object(cfg_path)
    except (ImportError, AttributeError) as e:
        app.logger.warning(f"Could not load config object {cfg_path}: {e}")

    _validate_production_security(app, cfg_path)

    limiter.init_app(app)
    if not app.config.get("RATELIMIT_ENABLED", True):
        limiter.enabled = False

    if not app.secret_key:
        app.secret_key = app.config.get("SECRET_KEY", "")

    # JSON blueprints are protected by the X-Requested-With check instead
    csrf = CSRFProtect(app)
    csrf.exempt(reminders_bp)
    csrf.exempt(tasks_bp)

    supabase_client.init_supabase(app)

    register_error_handlers(app)

    @app.after_request
    def apply_security_headers(resp: Response) -> Response:
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        resp.headers["X-Frame-Options"] = "DENY"

        if app.config.get("SESSION_COOKIE_SECURE", False):
            resp.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return resp

    app.register_blueprint(reminders_bp)
    app.register_blueprint(tasks_bp)

    if not app.config.get("TESTING", False) and app.config.get("SCHEDULER_ENABLED", True):
        _start_scheduler(app)

    from plantcare.cli import materialize_tasks_command
    app.cli.add_command(materialize_tasks_command)

    return app
