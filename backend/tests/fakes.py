"""
Test doubles shared by the backend tests.

- FakeCustomerRepo: in-memory, Protocol-compatible customer repository
- ManualClock: hand-driven monotonic clock for the list cache
- make_legacy_store: SQLite store whose customer table uses legacy column names
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from customer_api.core.contracts import CustomerPage, CustomerRecord, CustomerStatus, UpdateResult
from customer_api.core.errors import ConflictError, CustomerNotFoundError
from customer_api.repos.customer_repo import clamp_limit
from customer_api.repos.schema_adapter import MUTABLE_FIELDS


LEGACY_DDL = """
CREATE TABLE customers (
    id VARCHAR(36) PRIMARY KEY,
    tenant_id VARCHAR(255),
    name VARCHAR(255),
    display_name VARCHAR(255) NOT NULL,
    domain VARCHAR(255) NOT NULL UNIQUE,
    status VARCHAR(50) DEFAULT 'active',
    created_date DATETIME NOT NULL,
    last_assessment_date DATETIME,
    total_assessments INTEGER DEFAULT 0{extra}
)
"""


def make_legacy_store(db_file: Path, *, with_updated_date: bool = False):
    """Create a SQLite store whose customer table uses legacy column names."""
    from sqlalchemy import text

    from customer_api.db.session import make_engine

    engine = make_engine(f"sqlite:///{db_file.as_posix()}")
    extra = ",\n    updated_date DATETIME" if with_updated_date else ""
    with engine.begin() as conn:
        conn.execute(text(LEGACY_DDL.format(extra=extra)))
    return engine


class ManualClock:
    """Monotonic seconds that only move when a test says so."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


class FakeCustomerRepo:
    """
    In-memory CustomerRepo.

    `missing` names logical fields the simulated store has no column for;
    updates report them as skipped, the way a legacy store does.
    """

    def __init__(self, *, missing: Iterable[str] = (), max_limit: int = 200, default_limit: int = 50) -> None:
        self.missing: FrozenSet[str] = frozenset(missing)
        self.max_limit = max_limit
        self.default_limit = default_limit
        self._items: Dict[str, CustomerRecord] = {}
        self._tick = 0
        self.list_calls: List[Dict[str, Any]] = []

    def _now(self) -> datetime:
        self._tick += 1
        return datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=self._tick)

    # Helpers for seeding
    def seed(self, tenant_name: str, tenant_domain: str, *, status: str = "active", **extra: Any) -> CustomerRecord:
        now = self._now()
        record = CustomerRecord(
            id=str(uuid.uuid4()),
            tenant_name=tenant_name,
            tenant_domain=tenant_domain.lower(),
            status=status,
            created_at=now,
            updated_at=None if "updated_at" in self.missing else now,
            **extra,
        )
        self._items[record.id] = record
        return record

    # Methods used by routes
    def list(self, *, status: Optional[str] = None, limit: Optional[int] = None, offset: int = 0) -> CustomerPage:
        self.list_calls.append({"status": status, "limit": limit, "offset": offset})
        limit = clamp_limit(limit, default=self.default_limit, maximum=self.max_limit)
        offset = max(0, offset)
        if status:
            rows = [c for c in self._items.values() if c.status == status]
        else:
            rows = [c for c in self._items.values() if c.status != CustomerStatus.DELETED.value]
        rows.sort(key=lambda c: c.id)
        rows.sort(key=lambda c: c.created_at, reverse=True)
        return CustomerPage(items=rows[offset : offset + limit], total_count=len(rows))

    def get(self, customer_id: str) -> CustomerRecord:
        record = self._items.get(customer_id)
        if record is None:
            raise CustomerNotFoundError(customer_id)
        return record

    def get_by_domain(self, tenant_domain: str) -> Optional[CustomerRecord]:
        wanted = tenant_domain.strip().lower()
        return next((c for c in self._items.values() if c.tenant_domain == wanted), None)

    def get_by_client_id(self, client_id: str) -> Optional[CustomerRecord]:
        return next(
            (c for c in self._items.values() if (c.app_registration or {}).get("clientId") == client_id), None
        )

    def create(self, *, tenant_name: str, tenant_domain: str, **extra: Any) -> CustomerRecord:
        if self.get_by_domain(tenant_domain) is not None:
            raise ConflictError("Customer with this domain already exists")
        return self.seed(tenant_name, tenant_domain, **extra)

    def update(self, customer_id: str, fields: Mapping[str, Any]) -> UpdateResult:
        current = self.get(customer_id)
        for name in ("tenant_name", "tenant_domain", "status"):
            if name in fields and fields[name] is None:
                raise ValueError(f"{name} cannot be null")
        if fields.get("status") == "active" and current.status != "active":
            raise ConflictError("Customer is not active; use reactivate to restore it")
        applied, skipped, values = set(), set(), {}
        for name, value in fields.items():
            if name not in MUTABLE_FIELDS:
                raise ValueError(f"field '{name}' cannot be updated")
            if name in self.missing:
                skipped.add(name)
            else:
                values[name] = value
                applied.add(name)
        if "updated_at" in self.missing:
            skipped.add("updated_at")
        else:
            values["updated_at"] = self._now()
            applied.add("updated_at")
        updated = replace(current, **values)
        self._items[customer_id] = updated
        return UpdateResult(customer=updated, applied_fields=frozenset(applied), skipped_fields=frozenset(skipped))

    def soft_delete(self, customer_id: str) -> CustomerRecord:
        return self._set_status(customer_id, CustomerStatus.DELETED.value)

    def reactivate(self, customer_id: str) -> CustomerRecord:
        return self._set_status(customer_id, CustomerStatus.ACTIVE.value)

    def record_assessment(self, customer_id: str, completed_at: Optional[datetime] = None) -> CustomerRecord:
        current = self.get(customer_id)
        updated = replace(
            current,
            total_assessments=current.total_assessments + 1,
            last_assessment_at=completed_at or self._now(),
        )
        self._items[customer_id] = updated
        return updated

    def _set_status(self, customer_id: str, status: str) -> CustomerRecord:
        current = self.get(customer_id)
        updated = replace(current, status=status)
        self._items[customer_id] = updated
        return updated
