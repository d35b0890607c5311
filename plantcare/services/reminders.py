"""
Reminder service for plant care scheduling.

Owns the live recurrence rules (one per plant and care type) in the
`reminders` table: seeding, cadence edits, deletion and lookups. Date
arithmetic lives in recurrence.py; completion lives in task_history.py
because it writes both tables at once.
"""

from __future__ import annotations
from datetime import date
from typing import Iterable, List, Optional

from postgrest.exceptions import APIError

from plantcare.services import supabase_client
from plantcare.services.care_models import ReminderRule
from plantcare.services import recurrence
from plantcare.services.supabase_client import require_admin_client, store_errors
from plantcare.utils.cache import invalidate_user_calendar_cache
from plantcare.utils.errors import DuplicateRule, NotFound, log_info
from plantcare.utils.validation import normalize_care_type

RULE_COLUMNS = "*, plants(name, image_url)"

# Postgres unique_violation
_UNIQUE_VIOLATION = "23505"


def _is_unique_violation(error: Exception) -> bool:
    return getattr(error, "code", None) == _UNIQUE_VIOLATION


def _ensure_plant_owned(user_id: str, plant_id: str) -> None:
    with store_errors("checking plant ownership", plant_id=plant_id):
        plant = supabase_client.get_plant_by_id(plant_id, user_id)
    if not plant:
        raise NotFound("Plant", plant_id=plant_id)


def find_rule(user_id: str, plant_id: str, care_type: str) -> Optional[ReminderRule]:
    """Return the rule for (plant, care type) owned by user_id, or None."""
    supabase = require_admin_client()
    with store_errors("fetching reminder", plant_id=plant_id, care_type=care_type):
        response = supabase.table("reminders").select(RULE_COLUMNS) \
            .eq("user_id", user_id) \
            .eq("plant_id", plant_id) \
            .eq("care_type", care_type) \
            .limit(1) \
            .execute()
    return ReminderRule.from_row(response.data[0]) if response.data else None


def get_rule(user_id: str, plant_id: str, care_type: str) -> ReminderRule:
    """Like find_rule, but raises NotFound."""
    rule = find_rule(user_id, plant_id, care_type)
    if rule is None:
        raise NotFound("Reminder", plant_id=plant_id, care_type=care_type)
    return rule


def get_rule_by_id(rule_id: str, user_id: str) -> Optional[ReminderRule]:
    supabase = require_admin_client()
    with store_errors("fetching reminder", reminder_id=rule_id):
        response = supabase.table("reminders").select(RULE_COLUMNS) \
            .eq("id", rule_id) \
            .eq("user_id", user_id) \
            .limit(1) \
            .execute()
    return ReminderRule.from_row(response.data[0]) if response.data else None


def list_rules(user_id: str, plant_id: Optional[str] = None) -> List[ReminderRule]:
    """
    Get all rules for a user, optionally filtered by plant.

    Returns:
        Rules ordered by next_due_date
    """
    supabase = require_admin_client()
    with store_errors("listing reminders", user_id=user_id):
        query = supabase.table("reminders").select(RULE_COLUMNS).eq("user_id", user_id)
        if plant_id:
            query = query.eq("plant_id", plant_id)
        response = query.order("next_due_date", desc=False).execute()
    return [ReminderRule.from_row(row) for row in response.data or []]


def list_rules_due_between(user_id: str, start: date, end: date) -> List[ReminderRule]:
    """Rules whose next_due_date falls in [start, end] (calendar window)."""
    supabase = require_admin_client()
    with store_errors("listing reminders in range", user_id=user_id):
        response = supabase.table("reminders").select(RULE_COLUMNS) \
            .eq("user_id", user_id) \
            .gte("next_due_date", start.isoformat()) \
            .lte("next_due_date", end.isoformat()) \
            .order("next_due_date") \
            .execute()
    return [ReminderRule.from_row(row) for row in response.data or []]


def list_rules_due_on(day: date) -> List[ReminderRule]:
    """All users' rules due on a given day. Used by the daily job only."""
    supabase = require_admin_client()
    with store_errors("listing due reminders", day=day.isoformat()):
        response = supabase.table("reminders").select("*") \
            .eq("next_due_date", day.isoformat()) \
            .execute()
    return [ReminderRule.from_row(row) for row in response.data or []]


def initialize_rule(
    user_id: str,
    plant_id: str,
    care_type: str,
    frequency_days: Optional[int] = None,
    today: Optional[date] = None,
) -> ReminderRule:
    """
    Create the rule for (plant, care type), due today.

    Raises:
        DuplicateRule: a rule for this pair already exists
        NotFound: the plant does not exist or belongs to someone else
    """
    care_type = normalize_care_type(care_type)
    today = today or recurrence.care_today()
    rule = recurrence.new_rule(user_id, plant_id, care_type, today, frequency_days)

    _ensure_plant_owned(user_id, plant_id)
    if find_rule(user_id, plant_id, care_type) is not None:
        raise DuplicateRule(plant_id, care_type)

    supabase = require_admin_client()
    with store_errors("creating reminder", plant_id=plant_id, care_type=care_type):
        try:
            response = supabase.table("reminders").insert(rule.to_row()).execute()
        except APIError as e:
            # Lost a race with a concurrent insert; the unique index caught it
            if _is_unique_violation(e):
                raise DuplicateRule(plant_id, care_type) from e
            raise

    invalidate_user_calendar_cache(user_id)
    log_info("Reminder created", user_id=user_id, plant_id=plant_id, care_type=care_type)
    return ReminderRule.from_row(response.data[0]) if response.data else rule


def initialize_rules_for_plant(
    user_id: str,
    plant_id: str,
    care_types: Iterable[str],
    today: Optional[date] = None,
) -> List[ReminderRule]:
    """
    Seed one rule per requested care type when a plant is saved.

    Upsert semantics: care types that already have a rule keep it untouched;
    the rest are created due today with the default cadence.

    Returns:
        The rule for every requested care type (existing or new)
    """
    requested = []
    for care_type in care_types:
        normalized = normalize_care_type(care_type)
        if normalized not in requested:
            requested.append(normalized)
    if not requested:
        return []

    today = today or recurrence.care_today()
    _ensure_plant_owned(user_id, plant_id)

    existing = {rule.care_type for rule in list_rules(user_id, plant_id)}
    to_create = [
        recurrence.new_rule(user_id, plant_id, care_type, today).to_row()
        for care_type in requested
        if care_type not in existing
    ]

    if to_create:
        supabase = require_admin_client()
        with store_errors("seeding reminders", plant_id=plant_id):
            supabase.table("reminders").upsert(
                to_create,
                on_conflict="plant_id,care_type",
                ignore_duplicates=True,
            ).execute()
        invalidate_user_calendar_cache(user_id)
        log_info("Reminders seeded", user_id=user_id, plant_id=plant_id, count=len(to_create))

    return [rule for rule in list_rules(user_id, plant_id) if rule.care_type in requested]


def update_frequency(
    user_id: str,
    plant_id: str,
    care_type: str,
    frequency_days: int,
    today: Optional[date] = None,
) -> ReminderRule:
    """
    Set a new cadence and restart the countdown from today.

    Raises:
        InvalidFrequency: before anything is read or written
        NotFound: no rule for this pair
    """
    care_type = normalize_care_type(care_type)
    recurrence.validate_frequency(frequency_days)
    today = today or recurrence.care_today()

    rule = get_rule(user_id, plant_id, care_type)
    updated = recurrence.with_frequency(rule, frequency_days, today)

    supabase = require_admin_client()
    with store_errors("updating reminder frequency", reminder_id=rule.id):
        response = supabase.table("reminders").update({
            "frequency_days": updated.frequency_days,
            "next_due_date": updated.next_due_date.isoformat(),
        }).eq("id", rule.id).eq("user_id", user_id).execute()

    if not response.data:
        # Deleted between the read and the write
        raise NotFound("Reminder", plant_id=plant_id, care_type=care_type)

    invalidate_user_calendar_cache(user_id)
    return updated


def delete_rule(user_id: str, plant_id: str, care_type: str) -> None:
    """
    Remove the rule. Task history rows keep their plant and care type
    (reminder_id is set to NULL by the foreign key), so history stays
    queryable.
    """
    care_type = normalize_care_type(care_type)
    supabase = require_admin_client()

    with store_errors("deleting reminder", plant_id=plant_id, care_type=care_type):
        response = supabase.table("reminders").delete() \
            .eq("user_id", user_id) \
            .eq("plant_id", plant_id) \
            .eq("care_type", care_type) \
            .execute()

    if not response.data:
        raise NotFound("Reminder", plant_id=plant_id, care_type=care_type)

    invalidate_user_calendar_cache(user_id)
    log_info("Reminder deleted", user_id=user_id, plant_id=plant_id, care_type=care_type)
