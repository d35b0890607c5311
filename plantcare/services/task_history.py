"""
Task history ledger.

Append-only record of what was due (one row per rule per due day) and
what was actually done. Rows are created by the daily materialization job,
flipped once from pending to completed, and never deleted.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from plantcare.services import recurrence
from plantcare.services.care_models import ReminderRule, TaskOccurrence
from plantcare.services.reminders import get_rule_by_id, list_rules_due_on
from plantcare.services.supabase_client import require_admin_client, store_errors
from plantcare.utils.cache import invalidate_user_calendar_cache, invalidate_users_calendar_cache
from plantcare.utils.errors import (
    AlreadyCompleted,
    CareValidationError,
    FutureCompletionNotAllowed,
    InvalidCompletionDate,
    NotFound,
    StoreUnavailable,
    log_error,
    log_info,
    log_warning,
)

OCCURRENCE_COLUMNS = "*, plants(name, image_url)"

# Results reported by the complete_care_task database function
RESULT_COMPLETED = "completed"
RESULT_COMPLETED_WITHOUT_RULE = "completed_without_rule"
RESULT_ALREADY_COMPLETED = "already_completed"
RESULT_NOT_FOUND = "not_found"
RESULT_INVALID_DATE = "invalid_completion_date"


def get_occurrence(occurrence_id: str, user_id: str) -> TaskOccurrence:
    """
    Get a single occurrence (with ownership check).

    Raises:
        NotFound: missing or owned by another user
    """
    supabase = require_admin_client()
    with store_errors("fetching task", occurrence_id=occurrence_id):
        response = supabase.table("task_history").select(OCCURRENCE_COLUMNS) \
            .eq("id", occurrence_id) \
            .eq("user_id", user_id) \
            .limit(1) \
            .execute()
    if not response.data:
        raise NotFound("Task", occurrence_id=occurrence_id)
    return TaskOccurrence.from_row(response.data[0])


def list_occurrences(user_id: str, start: date, end: date) -> List[TaskOccurrence]:
    """
    Occurrences scheduled in [start, end], ordered by scheduled_date ascending.
    """
    if start > end:
        raise CareValidationError(
            "Start date must not be after end date.",
            {"start": start.isoformat(), "end": end.isoformat()},
        )

    supabase = require_admin_client()
    with store_errors("listing tasks", user_id=user_id):
        response = supabase.table("task_history").select(OCCURRENCE_COLUMNS) \
            .eq("user_id", user_id) \
            .gte("scheduled_date", start.isoformat()) \
            .lte("scheduled_date", end.isoformat()) \
            .order("scheduled_date", desc=False) \
            .execute()
    return [TaskOccurrence.from_row(row) for row in response.data or []]


def list_plant_history(
    user_id: str,
    plant_id: str,
    care_type: Optional[str] = None,
) -> List[TaskOccurrence]:
    """
    Full ledger for one plant, oldest first. Still works after the plant's
    rules have been deleted.
    """
    supabase = require_admin_client()
    with store_errors("listing plant history", plant_id=plant_id):
        query = supabase.table("task_history").select(OCCURRENCE_COLUMNS) \
            .eq("user_id", user_id) \
            .eq("plant_id", plant_id)
        if care_type:
            query = query.eq("care_type", care_type)
        response = query.order("scheduled_date", desc=False).execute()
    return [TaskOccurrence.from_row(row) for row in response.data or []]


# ============================================================================
# Materialization
# ============================================================================

def _occurrence_exists(supabase, rule: ReminderRule, day: date) -> bool:
    response = supabase.table("task_history").select("id") \
        .eq("reminder_id", rule.id) \
        .eq("scheduled_date", day.isoformat()) \
        .limit(1) \
        .execute()
    return bool(response.data)


def _materialize(today: date) -> Tuple[List[TaskOccurrence], Dict[str, int]]:
    supabase = require_admin_client()
    rules = list_rules_due_on(today)

    stats = {"due_rules": len(rules), "created": 0, "skipped": 0, "errors": 0}
    created: List[TaskOccurrence] = []

    for rule in rules:
        try:
            # Cheap pre-check; the unique index on (reminder_id, scheduled_date)
            # is what actually prevents duplicates under concurrent runs.
            if _occurrence_exists(supabase, rule, today):
                stats["skipped"] += 1
                continue

            row = recurrence.new_occurrence(rule, today).to_row()
            response = supabase.table("task_history").upsert(
                row,
                on_conflict="reminder_id,scheduled_date",
                ignore_duplicates=True,
            ).execute()

            if response.data:
                created.extend(TaskOccurrence.from_row(r) for r in response.data)
                stats["created"] += 1
            else:
                # Another run inserted it between the check and the upsert
                stats["skipped"] += 1

        except Exception as e:
            log_error(
                f"[Materialize] Error materializing reminder {rule.id}: {e}",
                user_id=rule.user_id,
                plant_id=rule.plant_id,
            )
            stats["errors"] += 1
            continue

    invalidate_users_calendar_cache(o.user_id for o in created)
    return created, stats


def materialize_due_occurrences(today: Optional[date] = None) -> List[TaskOccurrence]:
    """
    Create one pending occurrence for every rule due today.

    Idempotent for a given day: rules that already have an occurrence for
    today are skipped. A failure on one rule is logged and does not stop the
    others. An empty list means nothing was due (or everything was already
    materialized).

    Raises:
        StoreUnavailable: the due rules could not be read at all
    """
    created, _ = _materialize(today or recurrence.care_today())
    return created


def run_daily_materialization(today: Optional[date] = None) -> Dict[str, Any]:
    """
    Daily job entry point (scheduler and CLI).

    Never raises; returns counts for logging/CLI output:
        {"date": "2024-03-01", "due_rules": 3, "created": 3, "skipped": 0, "errors": 0}
    """
    today = today or recurrence.care_today()
    log_info(f"[Materialize] Starting daily task materialization for {today.isoformat()}")

    try:
        _, stats = _materialize(today)
    except StoreUnavailable as e:
        log_error(f"[Materialize] Job failed: {e.message}", **e.details)
        stats = {"due_rules": 0, "created": 0, "skipped": 0, "errors": 1}
    except Exception as e:
        # Malformed rows fail while parsing, after the store call returned
        log_error(f"[Materialize] Job failed: {e}", date=today.isoformat())
        stats = {"due_rules": 0, "created": 0, "skipped": 0, "errors": 1}

    stats["date"] = today.isoformat()
    log_info(
        f"[Materialize] Completed: "
        f"{stats['created']}/{stats['due_rules']} tasks created, "
        f"{stats['skipped']} already present, "
        f"{stats['errors']} errors"
    )
    if stats["errors"]:
        log_warning(f"[Materialize] {stats['errors']} reminder(s) were not materialized; rerun is safe", date=stats["date"])
    return stats


# ============================================================================
# Completion
# ============================================================================

def mark_completed(
    occurrence_id: str,
    user_id: str,
    completion_date: Optional[date] = None,
    today: Optional[date] = None,
) -> Tuple[Optional[ReminderRule], TaskOccurrence]:
    """
    Complete an occurrence and advance its rule in one transaction.

    Both writes go through the complete_care_task database function, so
    either the task is completed and the rule advanced, or neither. The
    function computes the new due date from the frequency it reads under
    its row lock; the returned rule reflects what was stored.

    Args:
        occurrence_id: task_history id
        user_id: owner (every read and write is scoped by it)
        completion_date: day the care was done (defaults to today)
        today: reference "today" (defaults to care_today())

    Returns:
        (advanced_rule_or_None, completed_occurrence). The rule is None when
        it was deleted after the task was created.

    Raises:
        FutureCompletionNotAllowed, AlreadyCompleted, InvalidCompletionDate,
        NotFound, StoreUnavailable (retryable, nothing written)
    """
    today = today or recurrence.care_today()
    completion_date = completion_date or today
    if completion_date > today:
        raise FutureCompletionNotAllowed(completion_date, today)

    occurrence = get_occurrence(occurrence_id, user_id)
    rule = get_rule_by_id(occurrence.reminder_id, user_id) if occurrence.reminder_id else None
    advanced, done = recurrence.complete_occurrence(rule, occurrence, today, completion_date)

    supabase = require_admin_client()
    with store_errors("completing task", occurrence_id=occurrence_id):
        response = supabase.rpc("complete_care_task", {
            "p_occurrence_id": occurrence_id,
            "p_user_id": user_id,
            "p_completed_date": done.completed_date.isoformat(),
            "p_today": today.isoformat(),
        }).execute()

    result = response.data[0] if response.data else None
    if not result:
        raise StoreUnavailable("Unexpected response from database")

    message = result.get("message")
    if not result.get("success"):
        # Lost a race with another request between our read and the write
        if message == RESULT_ALREADY_COMPLETED:
            raise AlreadyCompleted(occurrence_id)
        if message == RESULT_NOT_FOUND:
            raise NotFound("Task", occurrence_id=occurrence_id)
        if message == RESULT_INVALID_DATE:
            raise InvalidCompletionDate(
                "A task cannot be completed before its scheduled date.",
                {"occurrence_id": occurrence_id},
            )
        raise StoreUnavailable(details={"message": message})

    if message == RESULT_COMPLETED_WITHOUT_RULE:
        advanced = None
    elif advanced is not None and result.get("next_due_date"):
        # The function advances from the cadence it saw under the row lock,
        # which differs from ours if the frequency was edited meanwhile
        advanced = replace(
            advanced,
            frequency_days=int(result["frequency_days"]),
            next_due_date=date.fromisoformat(str(result["next_due_date"])[:10]),
        )

    invalidate_user_calendar_cache(user_id)
    log_info(
        "Task completed",
        user_id=user_id,
        occurrence_id=occurrence_id,
        next_due_date=advanced.next_due_date.isoformat() if advanced else None,
    )
    return advanced, done
