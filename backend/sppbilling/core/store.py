# ============================================================
# sppbilling/core/store.py
#
# SchoolStore owns every collection of the console in memory:
#
#   academic_years, institutions, classes, students,
#   fee_structures, billings, payments, operators
#
# Each collection is a dict id → entity. Dicts keep insertion
# order, which is the order list endpoints and reports return.
#
# There is NO module-level instance. main.create_app() builds one
# and keeps it on app.state; routes receive it via
# api.deps.get_store. Tests build their own.
#
# Lookups mirror the old SchoolDB wrapper:
#   select_one  → entity or None (unknown id is a value, not an error)
#   require_one → entity or raises errors.NotFound
# ============================================================

import itertools
import threading
from collections import defaultdict
from typing import Any, Callable, Optional
from uuid import uuid4

from pydantic import BaseModel, ValidationError as PydanticValidationError

from sppbilling.core import errors
from sppbilling.core.time import utc_now

TABLES = (
    "academic_years",
    "institutions",
    "classes",
    "students",
    "fee_structures",
    "billings",
    "payments",
    "operators",
)

# Human labels for NotFound messages
_LABELS = {
    "academic_years": "Academic year",
    "institutions":   "Institution",
    "classes":        "Class",
    "students":       "Student",
    "fee_structures": "Fee structure",
    "billings":       "Billing record",
    "payments":       "Payment",
    "operators":      "Operator",
}


class SchoolStore:
    """In-memory state of one console instance."""

    def __init__(self):
        self._tables: dict[str, dict[str, BaseModel]] = {name: {} for name in TABLES}
        self.activity_log: list[dict[str, Any]] = []

        self._receipt_seq = itertools.count(1)
        self._receipt_guard = threading.Lock()

        # One lock per billing record; payments on the same record queue up.
        self._record_locks: dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    # ── ids & sequences ──────────────────────────────────────
    @staticmethod
    def new_id() -> str:
        return str(uuid4())

    def next_receipt_sequence(self) -> int:
        with self._receipt_guard:
            return next(self._receipt_seq)

    def record_lock(self, record_id: str) -> threading.Lock:
        """Lock of an existing billing record. Unknown ids raise NotFound."""
        self.require_one("billings", record_id)
        with self._locks_guard:
            return self._record_locks[record_id]

    # ── reads ────────────────────────────────────────────────
    def table(self, name: str) -> dict[str, BaseModel]:
        if name not in self._tables:
            raise KeyError(f"Unknown table: {name}")
        return self._tables[name]

    def all(self, name: str) -> list:
        return list(self.table(name).values())

    def select(
        self,
        table_name: str,
        where: Optional[Callable[[Any], bool]] = None,
        **filters: Any,
    ) -> list:
        """
        Rows of `table_name` whose attributes equal every keyword filter.
        Filters set to None are ignored so callers can pass
        optional query params straight through.
        """
        active = {k: v for k, v in filters.items() if v is not None}
        return [
            row for row in self.table(table_name).values()
            if all(_value(getattr(row, k)) == _value(v) for k, v in active.items())
            and (where is None or where(row))
        ]

    def select_one(self, name: str, record_id: Optional[str]):
        if not record_id:
            return None
        return self.table(name).get(record_id)

    def require_one(self, name: str, record_id: Optional[str]):
        row = self.select_one(name, record_id)
        if row is None:
            raise errors.NotFound(
                f"{_LABELS.get(name, name)} not found",
                table=name, id=record_id,
            )
        return row

    def exists(self, table_name: str, **filters: Any) -> bool:
        return bool(self.select(table_name, **filters))

    # ── writes ───────────────────────────────────────────────
    def insert(self, name: str, row: BaseModel) -> BaseModel:
        table = self.table(name)
        if row.id in table:
            raise errors.Conflict(f"{_LABELS.get(name, name)} {row.id} already exists")
        table[row.id] = row
        return row

    def update(self, name: str, record_id: str, /, **changes: Any) -> BaseModel:
        """
        Replace the stored row with a copy carrying `changes`.
        Rows that have an updated_at field get it refreshed.
        The dict slot is reused so ordering does not change.
        """
        current = self.require_one(name, record_id)
        if "updated_at" in type(current).model_fields:
            changes.setdefault("updated_at", utc_now())
        try:
            updated = type(current).model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as e:
            raise errors.ValidationError(
                f"Invalid value for {_LABELS.get(name, name).lower()}",
                fields=[".".join(str(p) for p in err["loc"]) for err in e.errors()],
            )
        self.table(name)[record_id] = updated
        return updated

    def delete(self, name: str, record_id: str) -> BaseModel:
        row = self.require_one(name, record_id)
        del self.table(name)[record_id]
        if name == "billings":
            with self._locks_guard:
                self._record_locks.pop(record_id, None)
        return row


def _value(v: Any) -> Any:
    # Enum members compare equal to their string values in filters
    return getattr(v, "value", v)
