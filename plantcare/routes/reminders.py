"""
Reminder routes for plant care scheduling.

JSON endpoints for seeding, listing, re-scheduling and deleting care rules,
plus the month calendar that merges rules with task history.
"""

from __future__ import annotations
from flask import Blueprint, current_app, request, jsonify
from plantcare.extensions import limiter
from plantcare.services import care_calendar
from plantcare.services import reminders as reminder_service
from plantcare.services.recurrence import care_today
from plantcare.utils.auth import require_auth, get_current_user_id, require_ajax_for_mutations
from plantcare.utils.errors import CareValidationError
from plantcare.utils.validation import (
    normalize_care_type,
    parse_frequency_days,
    parse_iso_date,
    parse_year_month,
    require_uuid,
)

reminders_bp = Blueprint("reminders", __name__, url_prefix="/reminders")
reminders_bp.before_request(require_ajax_for_mutations)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise CareValidationError("Invalid request body")
    return data


def _seed_limit() -> str:
    return current_app.config.get("SEED_RATE_LIMIT", "20 per minute")


@reminders_bp.route("/", methods=["GET"])
@require_auth
def index():
    """List the user's rules, optionally for one plant (?plant_id=)."""
    user_id = get_current_user_id()

    plant_id = request.args.get("plant_id")
    if plant_id:
        require_uuid(plant_id, "plant_id")

    rules = reminder_service.list_rules(user_id, plant_id)

    return jsonify({
        "success": True,
        "count": len(rules),
        "reminders": [rule.to_dict() for rule in rules],
    })


@reminders_bp.route("/", methods=["POST"])
@limiter.limit(_seed_limit)
@require_auth
def create():
    """
    Create the rule for one plant and care type.

    Request body:
        {"plant_id": "<uuid>", "care_type": "watering", "frequency_days": 7}

    frequency_days is optional (default cadence). Responds 409 when the rule
    already exists.
    """
    user_id = get_current_user_id()
    data = _json_body()

    plant_id = require_uuid(data.get("plant_id"), "plant_id")
    care_type = normalize_care_type(data.get("care_type"))
    frequency_days = None
    if data.get("frequency_days") is not None:
        frequency_days = parse_frequency_days(data["frequency_days"])

    rule = reminder_service.initialize_rule(user_id, plant_id, care_type, frequency_days)

    return jsonify({"success": True, "reminder": rule.to_dict()}), 201


@reminders_bp.route("/initialize", methods=["POST"])
@limiter.limit(_seed_limit)
@require_auth
def initialize():
    """
    Seed rules right after a plant is saved.

    Request body:
        {"plant_id": "<uuid>", "care_types": ["watering", "fertilizing"]}

    Existing rules are left as they are, so calling this twice is safe.
    """
    user_id = get_current_user_id()
    data = _json_body()

    plant_id = require_uuid(data.get("plant_id"), "plant_id")
    care_types = data.get("care_types")
    if not isinstance(care_types, list) or not care_types:
        raise CareValidationError("care_types must be a non-empty list.")

    rules = reminder_service.initialize_rules_for_plant(user_id, plant_id, care_types)

    return jsonify({
        "success": True,
        "count": len(rules),
        "reminders": [rule.to_dict() for rule in rules],
    }), 201


@reminders_bp.route("/<plant_id>/<care_type>/frequency", methods=["PUT"])
@require_auth
def update_frequency(plant_id, care_type):
    """
    Change how often a care action repeats. The countdown restarts today.

    Request body:
        {"frequency_days": 3}
    """
    user_id = get_current_user_id()
    require_uuid(plant_id, "plant_id")
    care_type = normalize_care_type(care_type)

    data = _json_body()
    frequency_days = parse_frequency_days(data.get("frequency_days"))

    rule = reminder_service.update_frequency(user_id, plant_id, care_type, frequency_days)

    return jsonify({"success": True, "reminder": rule.to_dict()})


@reminders_bp.route("/<plant_id>/<care_type>", methods=["DELETE"])
@require_auth
def delete(plant_id, care_type):
    """Delete a rule. Its task history is kept."""
    user_id = get_current_user_id()
    require_uuid(plant_id, "plant_id")
    care_type = normalize_care_type(care_type)

    reminder_service.delete_rule(user_id, plant_id, care_type)

    return jsonify({"success": True, "message": "Reminder deleted"})


@reminders_bp.route("/calendar", methods=["GET"])
@reminders_bp.route("/calendar/<int:year>/<int:month>", methods=["GET"])
@require_auth
def calendar(year=None, month=None):
    """
    Month grid of completed, pending and upcoming care.

    Args:
        year: Year to display (defaults to the current year)
        month: Month to display (defaults to the current month)

    Query:
        selected: YYYY-MM-DD day whose details are returned under "selected"
    """
    user_id = get_current_user_id()

    today = care_today()
    if year is None or month is None:
        year, month = today.year, today.month
    year, month = parse_year_month(year, month)

    selected = None
    if request.args.get("selected"):
        selected = parse_iso_date(request.args["selected"], "selected")

    view = care_calendar.get_calendar_month(user_id, year, month, selected=selected, today=today)

    return jsonify({"success": True, "today": today.isoformat(), "calendar": view.to_dict()})
