"""
Care calendar view model.

Builds a fixed 6-week month grid (Monday first) that merges:
- task history (past and current occurrences, completed or pending)
- live rules (the single next due date of each rule, shown as "future")

Only the next due date of a rule is projected. Later cycles are not shown
until they become the next due date.
"""

from __future__ import annotations
from calendar import monthrange
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from plantcare.constants import CALENDAR_GRID_DAYS, CARE_TYPE_NAMES, UNKNOWN_PLANT_NAME
from plantcare.services import recurrence
from plantcare.services.care_models import ReminderRule, TaskOccurrence
from plantcare.services.reminders import list_rules_due_between
from plantcare.services.task_history import list_occurrences
from plantcare.utils.cache import cache_calendar_data


@dataclass
class CalendarDay:
    day: date
    is_current_month: bool
    is_today: bool = False
    completed: List[TaskOccurrence] = field(default_factory=list)
    pending: List[TaskOccurrence] = field(default_factory=list)
    future: List[ReminderRule] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return len(self.completed)

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    @property
    def future_count(self) -> int:
        return len(self.future)

    def summary(self) -> Dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "is_current_month": self.is_current_month,
            "is_today": self.is_today,
            "completed_count": self.completed_count,
            "pending_count": self.pending_count,
            "future_count": self.future_count,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data["completed"] = [o.to_dict() for o in self.completed]
        data["pending"] = [o.to_dict() for o in self.pending]
        data["future"] = [_future_item(r) for r in self.future]
        return data


@dataclass
class CalendarMonth:
    year: int
    month: int
    first_day: date
    last_day: date
    days: List[CalendarDay]
    selected: Optional[CalendarDay] = None

    def day(self, value: date) -> Optional[CalendarDay]:
        index = (value - self.first_day).days
        if 0 <= index < len(self.days):
            return self.days[index]
        return None

    def weeks(self) -> List[List[CalendarDay]]:
        return [self.days[i:i + 7] for i in range(0, len(self.days), 7)]

    def to_dict(self) -> Dict[str, Any]:
        prev_year, prev_month = _shift_month(self.year, self.month, -1)
        next_year, next_month = _shift_month(self.year, self.month, 1)
        return {
            "year": self.year,
            "month": self.month,
            "first_day": self.first_day.isoformat(),
            "last_day": self.last_day.isoformat(),
            "prev": {"year": prev_year, "month": prev_month},
            "next": {"year": next_year, "month": next_month},
            "weeks": [[d.to_dict() for d in week] for week in self.weeks()],
            "selected": self.selected.to_dict() if self.selected else None,
        }


def _future_item(rule: ReminderRule) -> Dict[str, Any]:
    return {
        "reminder_id": rule.id,
        "plant_id": rule.plant_id,
        "plant_name": rule.plant_name or UNKNOWN_PLANT_NAME,
        "plant_image_url": rule.plant_image_url,
        "care_type": rule.care_type,
        "care_type_name": CARE_TYPE_NAMES.get(rule.care_type, rule.care_type),
        "due_date": rule.next_due_date.isoformat(),
        "frequency_days": rule.frequency_days,
    }


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_window(year: int, month: int) -> Tuple[date, date]:
    """
    Grid bounds for a month: the Monday on or before the 1st, through 42 days.

    Example:
        >>> month_window(2024, 3)
        (datetime.date(2024, 2, 26), datetime.date(2024, 4, 7))
    """
    first_of_month = date(year, month, 1)
    first = first_of_month - timedelta(days=first_of_month.weekday())
    return first, first + timedelta(days=CALENDAR_GRID_DAYS - 1)


def build_calendar(
    year: int,
    month: int,
    occurrences: Iterable[TaskOccurrence],
    rules: Iterable[ReminderRule],
    today: date,
    selected: Optional[date] = None,
) -> CalendarMonth:
    """
    Group occurrences and rule due dates into the month grid.

    - An occurrence goes to completed or pending by its flag.
    - A rule goes to future on its next_due_date, unless that date is before
      today (missed materialization) or an occurrence already exists for the
      same rule on that date.
    """
    first, last = month_window(year, month)
    _, days_in_month = monthrange(year, month)
    month_last = date(year, month, days_in_month)

    by_day: Dict[date, CalendarDay] = {}
    days: List[CalendarDay] = []
    for offset in range(CALENDAR_GRID_DAYS):
        current = first + timedelta(days=offset)
        cell = CalendarDay(
            day=current,
            is_current_month=date(year, month, 1) <= current <= month_last,
            is_today=current == today,
        )
        by_day[current] = cell
        days.append(cell)

    materialized = defaultdict(set)
    for occurrence in sorted(occurrences, key=lambda o: (o.scheduled_date, o.care_type, o.plant_id)):
        cell = by_day.get(occurrence.scheduled_date)
        if cell is None:
            continue
        (cell.completed if occurrence.is_completed else cell.pending).append(occurrence)
        materialized[occurrence.scheduled_date].add(occurrence.key)
        if occurrence.reminder_id:
            materialized[occurrence.scheduled_date].add(occurrence.reminder_id)

    for rule in sorted(rules, key=lambda r: (r.next_due_date, r.care_type, r.plant_id)):
        due = rule.next_due_date
        cell = by_day.get(due)
        if cell is None or due < today:
            continue
        seen = materialized[due]
        if rule.key in seen or (rule.id and rule.id in seen):
            continue
        cell.future.append(rule)

    selected_cell = by_day.get(selected) if selected else None
    return CalendarMonth(
        year=year,
        month=month,
        first_day=first,
        last_day=last,
        days=days,
        selected=selected_cell,
    )


@cache_calendar_data
def _fetch_window(user_id: str, year: int, month: int) -> Tuple[List[TaskOccurrence], List[ReminderRule]]:
    first, last = month_window(year, month)
    return list_occurrences(user_id, first, last), list_rules_due_between(user_id, first, last)


def get_calendar_month(
    user_id: str,
    year: int,
    month: int,
    selected: Optional[date] = None,
    today: Optional[date] = None,
) -> CalendarMonth:
    """
    Fetch both stores for the month's grid window and build the view.

    Rows are cached per user and month; the grid is rebuilt each call
    because it depends on today.
    """
    occurrences, rules = _fetch_window(user_id, year, month)
    return build_calendar(
        year,
        month,
        occurrences,
        rules,
        today=today or recurrence.care_today(),
        selected=selected,
    )
