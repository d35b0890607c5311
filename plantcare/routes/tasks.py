"""
Task history routes.

JSON endpoints over the task ledger: range listing, per-plant history and
completion.
"""

from __future__ import annotations
from flask import Blueprint, current_app, request, jsonify
from plantcare.extensions import limiter
from plantcare.services import task_history
from plantcare.utils.auth import require_auth, get_current_user_id, require_ajax_for_mutations
from plantcare.utils.validation import normalize_care_type, parse_iso_date, require_uuid

tasks_bp = Blueprint("tasks", __name__, url_prefix="/tasks")
tasks_bp.before_request(require_ajax_for_mutations)


def _complete_limit() -> str:
    return current_app.config.get("COMPLETE_RATE_LIMIT", "30 per minute")


@tasks_bp.route("/", methods=["GET"])
@require_auth
def index():
    """
    Tasks scheduled between two dates, oldest first.

    Query:
        start, end: YYYY-MM-DD (inclusive, both required)
    """
    user_id = get_current_user_id()

    start = parse_iso_date(request.args.get("start"), "start")
    end = parse_iso_date(request.args.get("end"), "end")

    tasks = task_history.list_occurrences(user_id, start, end)

    return jsonify({
        "success": True,
        "count": len(tasks),
        "tasks": [task.to_dict() for task in tasks],
    })


@tasks_bp.route("/plant/<plant_id>", methods=["GET"])
@require_auth
def plant_history(plant_id):
    """Full care history for one plant (?care_type= to filter)."""
    user_id = get_current_user_id()
    require_uuid(plant_id, "plant_id")

    care_type = request.args.get("care_type")
    if care_type:
        care_type = normalize_care_type(care_type)

    tasks = task_history.list_plant_history(user_id, plant_id, care_type)

    return jsonify({
        "success": True,
        "count": len(tasks),
        "tasks": [task.to_dict() for task in tasks],
    })


@tasks_bp.route("/<occurrence_id>/complete", methods=["POST"])
@limiter.limit(_complete_limit)
@require_auth
def complete(occurrence_id):
    """
    Mark a task done and schedule the next one.

    Request body (optional):
        {"completed_date": "2024-03-01"}   // defaults to today

    Responses: 200 with the task and the advanced reminder, 409 if already
    completed, 422 for a future date, 503 (retryable) if the store failed.
    """
    user_id = get_current_user_id()
    require_uuid(occurrence_id, "occurrence_id")

    data = request.get_json(silent=True) or {}
    completion_date = None
    if isinstance(data, dict) and data.get("completed_date"):
        completion_date = parse_iso_date(data["completed_date"], "completed_date")

    rule, task = task_history.mark_completed(occurrence_id, user_id, completion_date)

    return jsonify({
        "success": True,
        "message": "Task completed",
        "task": task.to_dict(),
        "reminder": rule.to_dict() if rule else None,
    })
