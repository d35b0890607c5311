"""
Recurrence engine for plant care reminders.

Pure date arithmetic deciding when a care action falls due next, plus the
rule/occurrence transitions built on it. Nothing here touches the store;
callers persist the returned objects.

All "today" values are calendar dates in the deployment's reference
timezone (CARE_TIMEZONE). Day arithmetic is done on dates, never on UTC
midnights, so the result is the intended local day everywhere.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

from plantcare.services.care_models import ReminderRule, TaskOccurrence
from plantcare.utils.errors import (
    AlreadyCompleted,
    FutureCompletionNotAllowed,
    InvalidCompletionDate,
    InvalidFrequency,
)

DEFAULT_TIMEZONE = "America/Guatemala"
DEFAULT_FREQUENCY_DAYS = 7


def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def reference_timezone(tz_name: Optional[str] = None) -> ZoneInfo:
    """The single timezone used for server-side "today"."""
    return ZoneInfo(tz_name or _config("CARE_TIMEZONE", DEFAULT_TIMEZONE))


def care_today(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> date:
    """
    Return today's calendar date in the reference timezone.

    Args:
        tz_name: Override for CARE_TIMEZONE
        now: Aware instant to evaluate (defaults to the current time)

    Example:
        >>> care_today("America/Guatemala", datetime(2024, 3, 2, 3, 0, tzinfo=timezone.utc))
        datetime.date(2024, 3, 1)
    """
    instant = now or datetime.now(timezone.utc)
    if instant.tzinfo is None:
        # Naive instants are taken as UTC so the server clock's zone never leaks in
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(reference_timezone(tz_name)).date()


def default_frequency_days() -> int:
    return int(_config("DEFAULT_FREQUENCY_DAYS", DEFAULT_FREQUENCY_DAYS))


def validate_frequency(frequency_days) -> int:
    """Positive int only. bool is an int subclass and is rejected explicitly."""
    if isinstance(frequency_days, bool) or not isinstance(frequency_days, int) or frequency_days <= 0:
        raise InvalidFrequency(frequency_days)
    return frequency_days


def compute_next_due_date(today: date, frequency_days: int) -> date:
    """
    Return the next due date: today plus frequency_days calendar days.

    Raises:
        InvalidFrequency: frequency_days is not a positive integer
    """
    validate_frequency(frequency_days)
    if isinstance(today, datetime):
        today = today.date()
    return today + timedelta(days=frequency_days)


def new_rule(
    user_id: str,
    plant_id: str,
    care_type: str,
    today: date,
    frequency_days: Optional[int] = None,
) -> ReminderRule:
    """
    Build a fresh rule, due today so it shows up until a real cadence is set.
    """
    frequency = validate_frequency(frequency_days if frequency_days is not None else default_frequency_days())
    return ReminderRule(
        id=None,
        user_id=user_id,
        plant_id=plant_id,
        care_type=care_type,
        frequency_days=frequency,
        next_due_date=today,
    )


def with_frequency(rule: ReminderRule, new_frequency_days: int, today: date) -> ReminderRule:
    """
    Change a rule's cadence.

    Editing the cadence restarts the clock: next_due_date is recomputed from
    today and any partially elapsed interval is discarded.
    """
    return replace(
        rule,
        frequency_days=new_frequency_days,
        next_due_date=compute_next_due_date(today, new_frequency_days),
    )


def check_completion_date(occurrence: TaskOccurrence, completion_date: date, today: date) -> None:
    """Reject re-completion, future completion, and completion before the due day."""
    if occurrence.is_completed:
        raise AlreadyCompleted(occurrence.id)
    if completion_date > today:
        raise FutureCompletionNotAllowed(completion_date, today)
    if completion_date < occurrence.scheduled_date:
        raise InvalidCompletionDate(
            "A task cannot be completed before its scheduled date.",
            {
                "completion_date": completion_date.isoformat(),
                "scheduled_date": occurrence.scheduled_date.isoformat(),
            },
        )


def complete_occurrence(
    rule: Optional[ReminderRule],
    occurrence: TaskOccurrence,
    today: date,
    completed_on: Optional[date] = None,
) -> Tuple[Optional[ReminderRule], TaskOccurrence]:
    """
    Mark an occurrence done and advance its rule.

    The occurrence gets completed_date = completed_on (default today); the
    rule moves to today + frequency_days. The caller must persist both
    results as one unit. A rule of None (deleted since materialization)
    only completes the occurrence.

    Returns:
        (advanced_rule_or_None, completed_occurrence)
    """
    completion_date = completed_on or today
    check_completion_date(occurrence, completion_date, today)

    done = replace(occurrence, is_completed=True, completed_date=completion_date)
    if rule is None:
        return None, done

    advanced = replace(rule, next_due_date=compute_next_due_date(today, rule.frequency_days))
    return advanced, done


def new_occurrence(rule: ReminderRule, today: date) -> TaskOccurrence:
    """Pending ledger entry for a rule that is due today."""
    return TaskOccurrence(
        id=None,
        reminder_id=rule.id,
        user_id=rule.user_id,
        plant_id=rule.plant_id,
        care_type=rule.care_type,
        scheduled_date=today,
        is_completed=False,
        completed_date=None,
    )
