"""
Error handling utilities for the care schedule.

Provides consistent error handling across the application:
- A small exception hierarchy for care schedule failures, each carrying an
  HTTP status and a stable error code
- Store failures reach clients only as a generic message; the driver error
  is logged
- Logging helpers that work with or without a Flask app context
"""

from __future__ import annotations
from typing import Any, Dict, Optional
from flask import Flask, current_app, has_app_context, jsonify
from werkzeug.exceptions import HTTPException
import logging

logger = logging.getLogger(__name__)

# User-friendly generic error messages
GENERIC_MESSAGES = {
    "database": "We're experiencing technical difficulties. Please try again.",
}


# ============================================================================
# Exception hierarchy
# ============================================================================

class CareScheduleError(Exception):
    """Base class for errors surfaced to callers of the care schedule."""

    status_code = 500
    error_code = "CARE_SCHEDULE_ERROR"
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the JSON error payload."""
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
                "retryable": self.retryable,
            },
        }


class CareValidationError(CareScheduleError):
    """Input rejected at the boundary, before any write."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class InvalidFrequency(CareValidationError):
    error_code = "INVALID_FREQUENCY"

    def __init__(self, value: Any):
        super().__init__(
            "Frequency must be a positive whole number of days.",
            {"frequency_days": repr(value)},
        )


class InvalidCompletionDate(CareValidationError):
    error_code = "INVALID_COMPLETION_DATE"


class DuplicateRule(CareScheduleError):
    status_code = 409
    error_code = "DUPLICATE_RULE"

    def __init__(self, plant_id: str, care_type: str):
        super().__init__(
            f"A {care_type} reminder already exists for this plant.",
            {"plant_id": plant_id, "care_type": care_type},
        )


class AlreadyCompleted(CareScheduleError):
    """Double completion. Harmless for the caller, but reported as a conflict."""

    status_code = 409
    error_code = "ALREADY_COMPLETED"

    def __init__(self, occurrence_id: str):
        super().__init__("This task was already completed.", {"occurrence_id": occurrence_id})


class FutureCompletionNotAllowed(CareScheduleError):
    status_code = 422
    error_code = "FUTURE_COMPLETION_NOT_ALLOWED"

    def __init__(self, completion_date, today):
        super().__init__(
            "A task cannot be completed on a future date.",
            {"completion_date": completion_date.isoformat(), "today": today.isoformat()},
        )


class NotFound(CareScheduleError):
    """Missing, or not owned by the caller (the two are indistinguishable)."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, **details: Any):
        super().__init__(f"{resource} not found.", details)


class StoreUnavailable(CareScheduleError):
    """Transient persistence failure. No partial state was written."""

    status_code = 503
    error_code = "STORE_UNAVAILABLE"
    retryable = True

    def __init__(self, message: str = GENERIC_MESSAGES["database"], details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


# ============================================================================
# Flask integration
# ============================================================================

def handle_care_error(error: CareScheduleError):
    """Serialize a CareScheduleError to JSON with its status code."""
    if error.status_code >= 500:
        log_error(f"{error.error_code}: {error.message}", **error.details)
    else:
        log_info(f"Rejected request - {error.error_code}", **error.details)
    return jsonify(error.to_dict()), error.status_code


def handle_unexpected_error(error: Exception):
    """
    Last resort for bugs and unmapped driver errors.

    Full details go to the log; the client only gets a generic message so
    no schema or stack information leaks out.
    """
    if isinstance(error, HTTPException):
        return error
    _logger().error(f"Unexpected error - {error}", exc_info=True)
    return jsonify({
        "success": False,
        "error": {
            "code": "INTERNAL_ERROR",
            "message": GENERIC_MESSAGES["database"],
            "details": {},
            "retryable": False,
        },
    }), 500


def register_error_handlers(app: Flask) -> None:
    """Call this from the Flask app factory."""
    app.register_error_handler(CareScheduleError, handle_care_error)
    app.register_error_handler(Exception, handle_unexpected_error)


# ============================================================================
# Logging helpers
# ============================================================================

def _logger() -> logging.Logger:
    """App logger inside a request/app context, module logger otherwise (jobs, tests)."""
    if has_app_context():
        return current_app.logger
    return logger


def _with_context(message: str, context: Dict[str, Any]) -> str:
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        message = f"{message} | Context: {context_str}"
    return message


def log_error(message: str, **context) -> None:
    """
    Log an error with optional context.

    Examples:
        >>> log_error("Materialization failed", reminder_id="123")
    """
    _logger().error(_with_context(message, context))


def log_warning(message: str, **context) -> None:
    """Log a warning with optional context."""
    _logger().warning(_with_context(message, context))


def log_info(message: str, **context) -> None:
    """
    Log an info message with optional context.

    Examples:
        >>> log_info("Rule created", user_id="123", care_type="watering")
    """
    _logger().info(_with_context(message, context))
