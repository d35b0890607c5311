"""
Care schedule records.

Immutable rule and occurrence values shared by the recurrence engine, the
stores and the calendar. Rows come from PostgREST as dicts (optionally with
an embedded `plants` join); from_row/to_row convert at the store boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

from plantcare.constants import CARE_TYPE_NAMES, UNKNOWN_PLANT_NAME


def _to_date(raw: Any) -> Optional[date]:
    """Rows come back from PostgREST with ISO strings; tests may pass dates."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw)[:10])


def _plant_fields(row: Dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    plant = row.get("plants") or {}
    if not isinstance(plant, dict):
        plant = {}
    return plant.get("name"), plant.get("image_url")


@dataclass(frozen=True, slots=True)
class ReminderRule:
    """
    Live recurrence rule for one (plant, care type) pair.

    Only the next due date is tracked; history lives in TaskOccurrence.
    """

    id: Optional[str]
    user_id: str
    plant_id: str
    care_type: str
    frequency_days: int
    next_due_date: date

    plant_name: Optional[str] = None
    plant_image_url: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.plant_id, self.care_type)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> ReminderRule:
        plant_name, plant_image_url = _plant_fields(row)
        return cls(
            id=row.get("id"),
            user_id=row["user_id"],
            plant_id=row["plant_id"],
            care_type=row["care_type"],
            frequency_days=int(row["frequency_days"]),
            next_due_date=_to_date(row["next_due_date"]),
            plant_name=plant_name,
            plant_image_url=plant_image_url,
        )

    def to_row(self) -> Dict[str, Any]:
        """Columns written to the reminders table."""
        row = {
            "user_id": self.user_id,
            "plant_id": self.plant_id,
            "care_type": self.care_type,
            "frequency_days": self.frequency_days,
            "next_due_date": self.next_due_date.isoformat(),
        }
        if self.id:
            row["id"] = self.id
        return row

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "plant_id": self.plant_id,
            "plant_name": self.plant_name or UNKNOWN_PLANT_NAME,
            "care_type": self.care_type,
            "care_type_name": CARE_TYPE_NAMES.get(self.care_type, self.care_type),
            "frequency_days": self.frequency_days,
            "next_due_date": self.next_due_date.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class TaskOccurrence:
    """
    One dated instance of a care type becoming due (task_history row).

    completed_date is set iff is_completed.
    """

    id: Optional[str]
    reminder_id: Optional[str]
    user_id: str
    plant_id: str
    care_type: str
    scheduled_date: date
    is_completed: bool = False
    completed_date: Optional[date] = None

    plant_name: Optional[str] = None
    plant_image_url: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.plant_id, self.care_type)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> TaskOccurrence:
        plant_name, plant_image_url = _plant_fields(row)
        return cls(
            id=row.get("id"),
            reminder_id=row.get("reminder_id"),
            user_id=row["user_id"],
            plant_id=row["plant_id"],
            care_type=row["care_type"],
            scheduled_date=_to_date(row["scheduled_date"]),
            is_completed=bool(row.get("is_completed", False)),
            completed_date=_to_date(row.get("completed_date")),
            plant_name=plant_name,
            plant_image_url=plant_image_url,
        )

    def to_row(self) -> Dict[str, Any]:
        """Columns written to the task_history table."""
        row = {
            "reminder_id": self.reminder_id,
            "user_id": self.user_id,
            "plant_id": self.plant_id,
            "care_type": self.care_type,
            "scheduled_date": self.scheduled_date.isoformat(),
            "is_completed": self.is_completed,
            "completed_date": self.completed_date.isoformat() if self.completed_date else None,
        }
        if self.id:
            row["id"] = self.id
        return row

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reminder_id": self.reminder_id,
            "plant_id": self.plant_id,
            "plant_name": self.plant_name or UNKNOWN_PLANT_NAME,
            "plant_image_url": self.plant_image_url,
            "care_type": self.care_type,
            "care_type_name": CARE_TYPE_NAMES.get(self.care_type, self.care_type),
            "scheduled_date": self.scheduled_date.isoformat(),
            "is_completed": self.is_completed,
            "completed_date": self.completed_date.isoformat() if self.completed_date else None,
        }
