# tests/fakes.py

from __future__ import annotations

import copy
import uuid
from datetime import date, timedelta
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

from postgrest.exceptions import APIError

# Unique indexes enforced by the migration
UNIQUE_KEYS = {
    "reminders": ("plant_id", "care_type"),
    "task_history": ("reminder_id", "scheduled_date"),
}


class StoreDown(RuntimeError):
    """Raised by the fake to simulate a dropped connection."""


@dataclass(slots=True)
class FakeResponse:
    data: list[dict[str, Any]]


@dataclass(slots=True)
class FakeUser:
    id: str
    email: str

    def model_dump(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email}


class FakeAuth:
    def __init__(self) -> None:
        self.tokens: dict[str, FakeUser] = {}

    def get_user(self, token: str):
        user = self.tokens.get(token)
        if user is None:
            raise StoreDown("invalid JWT")
        return SimpleNamespace(user=user)

    def set_session(self, access_token: str, refresh_token: str):
        return self.get_user(access_token)


@dataclass(slots=True)
class Failure:
    op: str
    table: str
    match: dict[str, Any] = field(default_factory=dict)


class FakeQuery:
    """
    Chainable stand-in for a postgrest request builder.

    Supports the subset used by the services: select/eq/gte/lte/order/limit
    and insert/upsert/update/delete, ending in execute().
    """

    def __init__(self, db: FakeSupabase, table: str) -> None:
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.filters: list[tuple[str, str, Any]] = []
        self.order_by: tuple[str, bool] | None = None
        self.limit_to: int | None = None
        self.payload: list[dict[str, Any]] = []
        self.values: dict[str, Any] = {}
        self.ignore_duplicates = False

    # -- builders ---------------------------------------------------------

    def select(self, columns: str = "*") -> FakeQuery:
        self.op = "select"
        self.columns = columns
        return self

    def eq(self, column: str, value: Any) -> FakeQuery:
        self.filters.append(("eq", column, value))
        return self

    def gte(self, column: str, value: Any) -> FakeQuery:
        self.filters.append(("gte", column, value))
        return self

    def lte(self, column: str, value: Any) -> FakeQuery:
        self.filters.append(("lte", column, value))
        return self

    def order(self, column: str, desc: bool = False) -> FakeQuery:
        self.order_by = (column, desc)
        return self

    def limit(self, count: int) -> FakeQuery:
        self.limit_to = count
        return self

    def insert(self, rows) -> FakeQuery:
        self.op = "insert"
        self.payload = rows if isinstance(rows, list) else [rows]
        return self

    def upsert(self, rows, on_conflict: str = "", ignore_duplicates: bool = False) -> FakeQuery:
        self.op = "upsert"
        self.payload = rows if isinstance(rows, list) else [rows]
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, values: dict[str, Any]) -> FakeQuery:
        self.op = "update"
        self.values = dict(values)
        return self

    def delete(self) -> FakeQuery:
        self.op = "delete"
        return self

    # -- execution --------------------------------------------------------

    def _matches(self, row: dict[str, Any]) -> bool:
        for kind, column, value in self.filters:
            current = row.get(column)
            if kind == "eq" and current != value:
                return False
            if kind == "gte" and (current is None or current < value):
                return False
            if kind == "lte" and (current is None or current > value):
                return False
        return True

    def _project(self, row: dict[str, Any]) -> dict[str, Any]:
        out = copy.deepcopy(row)
        if "plants(" in self.columns:
            plant = self.db.find("plants", id=row.get("plant_id"))
            out["plants"] = (
                {"name": plant["name"], "image_url": plant.get("image_url")} if plant else None
            )
        return out

    def execute(self) -> FakeResponse:
        self.db.check_failure(self)
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "select":
            found = [r for r in rows if self._matches(r)]
            if self.order_by:
                column, desc = self.order_by
                found.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
            if self.limit_to is not None:
                found = found[: self.limit_to]
            return FakeResponse([self._project(r) for r in found])

        if self.op in ("insert", "upsert"):
            created = []
            for row in self.payload:
                if self.db.violates_unique(self.table_name, row):
                    if self.op == "upsert" and self.ignore_duplicates:
                        continue
                    raise APIError({
                        "message": "duplicate key value violates unique constraint",
                        "code": "23505",
                        "hint": None,
                        "details": None,
                    })
                created.append(self.db.add(self.table_name, **row))
            return FakeResponse(copy.deepcopy(created))

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.values)
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            if self.table_name == "reminders":
                # ON DELETE SET NULL
                removed_ids = {r["id"] for r in removed}
                for task in self.db.tables.get("task_history", []):
                    if task.get("reminder_id") in removed_ids:
                        task["reminder_id"] = None
            return FakeResponse(copy.deepcopy(removed))

        raise AssertionError(f"unsupported op {self.op}")


class FakeRpc:
    def __init__(self, db: FakeSupabase, name: str, params: dict[str, Any]) -> None:
        self.db = db
        self.name = name
        self.params = params

    def execute(self) -> FakeResponse:
        self.db.check_failure(self)
        if self.name != "complete_care_task":
            raise AssertionError(f"unknown function {self.name}")
        return FakeResponse([self.db.complete_care_task(**self.params)])


class FakeSupabase:
    """
    In-memory Supabase client: tables, unique indexes, the
    complete_care_task function, auth, and failure injection.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            "plants": [],
            "reminders": [],
            "task_history": [],
        }
        self.failures: list[Failure] = []
        self.rpc_calls: list[tuple[str, dict[str, Any]]] = []
        self.auth = FakeAuth()

    # -- client surface ---------------------------------------------------

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict[str, Any]) -> FakeRpc:
        self.rpc_calls.append((name, dict(params)))
        return FakeRpc(self, name, params)

    # -- failure injection ------------------------------------------------

    def fail_on(self, op: str, table: str, **match: Any) -> None:
        """
        Make matching requests raise StoreDown.

        op is select/insert/upsert/update/delete, or "rpc" with the function
        name as table. match narrows it to payload rows or eq filters with
        those values.
        """
        self.failures.append(Failure(op, table, match))

    def clear_failures(self) -> None:
        self.failures.clear()

    def check_failure(self, request) -> None:
        if isinstance(request, FakeRpc):
            op, table, values = "rpc", request.name, [request.params]
        else:
            op, table = request.op, request.table_name
            values = list(request.payload) or [
                {column: value for kind, column, value in request.filters if kind == "eq"}
            ]
        for failure in self.failures:
            if failure.op != op or failure.table != table:
                continue
            if not failure.match or any(
                all(v.get(k) == want for k, want in failure.match.items()) for v in values
            ):
                raise StoreDown(f"connection reset during {op} on {table}")

    # -- table helpers ----------------------------------------------------

    def add(self, table: str, **row: Any) -> dict[str, Any]:
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        if table == "task_history":
            row.setdefault("is_completed", False)
            row.setdefault("completed_date", None)
        self.tables.setdefault(table, []).append(row)
        return row

    def find(self, table: str, **match: Any) -> dict[str, Any] | None:
        for row in self.tables.get(table, []):
            if all(row.get(k) == v for k, v in match.items()):
                return row
        return None

    def rows(self, table: str, **match: Any) -> list[dict[str, Any]]:
        return [
            row for row in self.tables.get(table, [])
            if all(row.get(k) == v for k, v in match.items())
        ]

    def violates_unique(self, table: str, row: dict[str, Any]) -> bool:
        columns = UNIQUE_KEYS.get(table)
        if not columns:
            return False
        key = tuple(row.get(c) for c in columns)
        if any(part is None for part in key):
            # NULLs never collide in a Postgres unique index
            return False
        return any(tuple(r.get(c) for c in columns) == key for r in self.tables.get(table, []))

    def add_user(self, token: str, user_id: str, email: str = "grower@example.com") -> None:
        self.auth.tokens[token] = FakeUser(id=user_id, email=email)

    def add_plant(self, plant_id: str, user_id: str, name: str, image_url: str | None = None) -> dict:
        return self.add("plants", id=plant_id, user_id=user_id, name=name, image_url=image_url)

    def add_rule(self, user_id: str, plant_id: str, care_type: str, frequency_days: int, next_due) -> dict:
        return self.add(
            "reminders",
            user_id=user_id,
            plant_id=plant_id,
            care_type=care_type,
            frequency_days=frequency_days,
            next_due_date=str(next_due),
        )

    def add_task(self, rule: dict | None, scheduled, *, user_id: str | None = None,
                 plant_id: str | None = None, care_type: str | None = None,
                 completed_date=None) -> dict:
        return self.add(
            "task_history",
            reminder_id=rule["id"] if rule else None,
            user_id=user_id or rule["user_id"],
            plant_id=plant_id or rule["plant_id"],
            care_type=care_type or rule["care_type"],
            scheduled_date=str(scheduled),
            is_completed=completed_date is not None,
            completed_date=str(completed_date) if completed_date else None,
        )

    # -- database function ------------------------------------------------

    def complete_care_task(self, p_occurrence_id: str, p_user_id: str,
                           p_completed_date: str, p_today: str) -> dict:
        task = self.find("task_history", id=p_occurrence_id, user_id=p_user_id)
        if task is None:
            return {"success": False, "message": "not_found", "next_due_date": None, "frequency_days": None}
        if task["is_completed"]:
            return {"success": False, "message": "already_completed", "next_due_date": None, "frequency_days": None}
        if p_completed_date < task["scheduled_date"]:
            return {"success": False, "message": "invalid_completion_date", "next_due_date": None, "frequency_days": None}

        task["is_completed"] = True
        task["completed_date"] = p_completed_date

        rule = None
        if task["reminder_id"]:
            rule = self.find("reminders", id=task["reminder_id"], user_id=p_user_id)
        if rule is None:
            return {"success": True, "message": "completed_without_rule",
                    "next_due_date": None, "frequency_days": None}

        # Cadence is read at write time, like the locked row in the real function
        next_due = date.fromisoformat(p_today) + timedelta(days=rule["frequency_days"])
        rule["next_due_date"] = next_due.isoformat()
        return {"success": True, "message": "completed",
                "next_due_date": rule["next_due_date"], "frequency_days": rule["frequency_days"]}
