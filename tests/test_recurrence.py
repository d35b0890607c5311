# tests/test_recurrence.py

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from plantcare.services import recurrence
from plantcare.services.care_models import ReminderRule, TaskOccurrence
from plantcare.utils.errors import (
    AlreadyCompleted,
    FutureCompletionNotAllowed,
    InvalidCompletionDate,
    InvalidFrequency,
)


def _rule(frequency_days: int = 7, next_due: date = date(2024, 3, 1)) -> ReminderRule:
    return ReminderRule(
        id="rule-1",
        user_id="user-1",
        plant_id="plant-1",
        care_type="watering",
        frequency_days=frequency_days,
        next_due_date=next_due,
    )


def _occurrence(scheduled: date = date(2024, 3, 1), **overrides) -> TaskOccurrence:
    fields = dict(
        id="occ-1",
        reminder_id="rule-1",
        user_id="user-1",
        plant_id="plant-1",
        care_type="watering",
        scheduled_date=scheduled,
    )
    fields.update(overrides)
    return TaskOccurrence(**fields)


@pytest.mark.parametrize(
    ("today", "frequency", "expected"),
    [
        (date(2024, 3, 1), 7, date(2024, 3, 8)),
        (date(2024, 2, 25), 5, date(2024, 3, 1)),  # leap year
        (date(2023, 2, 25), 5, date(2023, 3, 2)),
        (date(2023, 12, 30), 3, date(2024, 1, 2)),
        (date(2024, 3, 1), 1, date(2024, 3, 2)),
    ],
)
def test_next_due_date_is_today_plus_frequency(today, frequency, expected) -> None:
    assert recurrence.compute_next_due_date(today, frequency) == expected


@pytest.mark.parametrize("bad", [0, -3, True, 1.5, "7", None])
def test_non_positive_or_non_integer_frequency_is_rejected(bad) -> None:
    with pytest.raises(InvalidFrequency):
        recurrence.compute_next_due_date(date(2024, 3, 1), bad)


def test_care_today_uses_reference_timezone_not_utc() -> None:
    # 03:00 UTC on the 2nd is still the evening of the 1st in Guatemala (UTC-6)
    instant = datetime(2024, 3, 2, 3, 0, tzinfo=timezone.utc)
    assert recurrence.care_today("America/Guatemala", instant) == date(2024, 3, 1)
    assert recurrence.care_today("Asia/Tokyo", datetime(2024, 3, 1, 20, 0, tzinfo=timezone.utc)) == date(2024, 3, 2)


def test_care_today_treats_naive_instant_as_utc() -> None:
    assert recurrence.care_today("America/Guatemala", datetime(2024, 3, 2, 3, 0)) == date(2024, 3, 1)


def test_new_rule_is_due_today_with_default_cadence() -> None:
    rule = recurrence.new_rule("user-1", "plant-1", "fertilizing", date(2024, 3, 5))

    assert rule.next_due_date == date(2024, 3, 5)
    assert rule.frequency_days == recurrence.DEFAULT_FREQUENCY_DAYS
    assert rule.id is None


def test_frequency_edit_restarts_from_today() -> None:
    # Old cadence would have put the next due date on the 20th; the edit
    # discards it and counts from today.
    rule = _rule(frequency_days=14, next_due=date(2024, 3, 20))

    updated = recurrence.with_frequency(rule, 5, today=date(2024, 3, 6))

    assert updated.next_due_date == date(2024, 3, 11)
    assert updated.frequency_days == 5
    assert rule.next_due_date == date(2024, 3, 20)


def test_complete_occurrence_advances_rule_without_mutating_inputs() -> None:
    rule = _rule()
    occurrence = _occurrence()

    advanced, done = recurrence.complete_occurrence(rule, occurrence, today=date(2024, 3, 1))

    assert advanced.next_due_date == date(2024, 3, 8)
    assert done.is_completed is True
    assert done.completed_date == date(2024, 3, 1)
    assert rule.next_due_date == date(2024, 3, 1)
    assert occurrence.is_completed is False
    assert occurrence.completed_date is None


def test_backdated_completion_records_date_but_advances_from_today() -> None:
    advanced, done = recurrence.complete_occurrence(
        _rule(frequency_days=7),
        _occurrence(date(2024, 3, 1)),
        today=date(2024, 3, 4),
        completed_on=date(2024, 3, 2),
    )

    assert done.completed_date == date(2024, 3, 2)
    assert advanced.next_due_date == date(2024, 3, 11)


def test_completing_without_rule_only_completes_occurrence() -> None:
    advanced, done = recurrence.complete_occurrence(None, _occurrence(reminder_id=None), today=date(2024, 3, 3))

    assert advanced is None
    assert done.completed_date == date(2024, 3, 3)


def test_completed_occurrence_cannot_be_completed_again() -> None:
    occurrence = _occurrence(is_completed=True, completed_date=date(2024, 3, 1))
    with pytest.raises(AlreadyCompleted):
        recurrence.complete_occurrence(_rule(), occurrence, today=date(2024, 3, 2))


def test_future_completion_is_rejected() -> None:
    with pytest.raises(FutureCompletionNotAllowed):
        recurrence.complete_occurrence(_rule(), _occurrence(), today=date(2024, 3, 1), completed_on=date(2024, 3, 2))


def test_completion_before_scheduled_date_is_rejected() -> None:
    with pytest.raises(InvalidCompletionDate):
        recurrence.complete_occurrence(
            _rule(), _occurrence(date(2024, 3, 5)), today=date(2024, 3, 6), completed_on=date(2024, 3, 4)
        )


def test_new_occurrence_is_pending_on_today() -> None:
    occurrence = recurrence.new_occurrence(_rule(), date(2024, 3, 1))

    assert occurrence.reminder_id == "rule-1"
    assert occurrence.scheduled_date == date(2024, 3, 1)
    assert occurrence.is_completed is False
    assert occurrence.completed_date is None
