"""
Schema compatibility adapter for the customer table.

Customer stores in the field come in two generations of column names:

- current: tenant_name, tenant_domain, contact_email, app_registration,
  created_at, updated_at, last_assessment_date
- legacy:  name / display_name, domain, created_date, updated_date

The adapter inspects the physical column list once, resolves every logical
field independently (current name preferred, legacy names as fallback) and
hands the result around as a frozen ColumnMapping. Writes are planned against
that mapping: fields without a physical column are reported as skipped rather
than failing the whole update.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from sqlalchemy import MetaData, Table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import NoSuchTableError

from customer_api.core.errors import SchemaMismatchError
from customer_api.core.logging import get_logger

__all__ = [
    "SchemaVariant",
    "ColumnMapping",
    "UpdatePlan",
    "SchemaAdapter",
    "FIELD_CANDIDATES",
    "REQUIRED_FIELDS",
    "MUTABLE_FIELDS",
    "resolve_columns",
]

log = get_logger(__name__)


class SchemaVariant(str, enum.Enum):
    CURRENT = "current"
    LEGACY = "legacy"


# Logical field -> physical candidates, most recent generation first
FIELD_CANDIDATES: Dict[str, Tuple[str, ...]] = {
    "id": ("id",),
    "tenant_id": ("tenant_id",),
    "tenant_name": ("tenant_name", "display_name", "name"),
    "tenant_domain": ("tenant_domain", "domain"),
    "contact_email": ("contact_email",),
    "notes": ("notes",),
    "status": ("status",),
    "app_registration": ("app_registration",),
    "created_at": ("created_at", "created_date"),
    "last_assessment_at": ("last_assessment_date", "last_assessment_at"),
    "total_assessments": ("total_assessments",),
    "updated_at": ("updated_at", "updated_date"),
}

REQUIRED_FIELDS: FrozenSet[str] = frozenset({"id", "tenant_name", "tenant_domain", "status", "created_at"})

# Fields a caller may change through a generic update
MUTABLE_FIELDS: FrozenSet[str] = frozenset(
    {
        "tenant_id",
        "tenant_name",
        "tenant_domain",
        "contact_email",
        "notes",
        "status",
        "app_registration",
        "last_assessment_at",
        "total_assessments",
    }
)

_CURRENT_MARKERS = ("tenant_name", "tenant_domain")


@dataclass(frozen=True)
class ColumnMapping:
    """Resolved logical -> physical column names for one store."""

    table: str
    variant: SchemaVariant
    columns: Mapping[str, str]
    # Reflected table, carries column types for result processing
    table_obj: Optional[Table] = field(default=None, compare=False, repr=False)

    def has(self, logical: str) -> bool:
        return logical in self.columns

    def physical(self, logical: str) -> str:
        return self.columns[logical]

    @property
    def logical_fields(self) -> FrozenSet[str]:
        return frozenset(self.columns)


@dataclass(frozen=True)
class UpdatePlan:
    """Physical column values to write plus the requested/applied diff."""

    values: Dict[str, Any] = field(default_factory=dict)
    applied: FrozenSet[str] = frozenset()
    skipped: FrozenSet[str] = frozenset()


def resolve_columns(table: str, physical_columns: Any, *, table_obj: Optional[Table] = None) -> ColumnMapping:
    """
    Build a ColumnMapping from the physical column names a store reports.

    Raises:
        SchemaMismatchError: a required field has no physical column.
    """
    present = {str(c).lower(): str(c) for c in physical_columns}
    columns: Dict[str, str] = {}
    for logical, candidates in FIELD_CANDIDATES.items():
        for candidate in candidates:
            if candidate in present:
                columns[logical] = present[candidate]
                break

    missing = sorted(REQUIRED_FIELDS - set(columns))
    if missing:
        raise SchemaMismatchError(
            f"Customer table '{table}' lacks required columns",
            details={"table": table, "missing": missing},
        )

    variant = (
        SchemaVariant.CURRENT
        if all(m in present for m in _CURRENT_MARKERS)
        else SchemaVariant.LEGACY
    )
    return ColumnMapping(table=table, variant=variant, columns=columns, table_obj=table_obj)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchemaAdapter:
    """
    Process-wide holder of the resolved column mapping.

    resolve() inspects the store on first use and caches the mapping;
    invalidate() forces the next resolve() to inspect again (used after a
    column-related database error).
    """

    def __init__(self, table: str = "customers", *, now: Callable[[], datetime] = _utcnow) -> None:
        self.table = table
        self._now = now
        self._mapping: Optional[ColumnMapping] = None
        self._lock = threading.Lock()

    @property
    def mapping(self) -> Optional[ColumnMapping]:
        return self._mapping

    def resolve(self, connection: Connection) -> ColumnMapping:
        """Return the cached mapping, inspecting the store if there is none yet."""
        mapping = self._mapping
        if mapping is not None:
            return mapping
        with self._lock:
            if self._mapping is None:
                try:
                    reflected = Table(self.table, MetaData(), autoload_with=connection)
                except NoSuchTableError as exc:
                    raise SchemaMismatchError(
                        f"Customer table '{self.table}' does not exist", details={"table": self.table}
                    ) from exc
                self._mapping = resolve_columns(self.table, reflected.columns.keys(), table_obj=reflected)
                log.info(
                    "customer schema resolved",
                    extra={
                        "table": self.table,
                        "variant": self._mapping.variant.value,
                        "fields": sorted(self._mapping.columns),
                    },
                )
            return self._mapping

    def invalidate(self) -> None:
        with self._lock:
            self._mapping = None

    def plan_update(self, mapping: ColumnMapping, fields: Mapping[str, Any]) -> UpdatePlan:
        """
        Translate logical field values into physical column values.

        Fields without a physical column are skipped. The mutable timestamp is
        stamped when the store has one and reported as skipped otherwise.
        """
        values: Dict[str, Any] = {}
        applied: set[str] = set()
        skipped: set[str] = set()

        for logical, value in fields.items():
            if logical not in MUTABLE_FIELDS:
                raise ValueError(f"field '{logical}' cannot be updated")
            if mapping.has(logical):
                values[mapping.physical(logical)] = value
                applied.add(logical)
            else:
                skipped.add(logical)

        if mapping.has("updated_at"):
            values[mapping.physical("updated_at")] = self._now()
            applied.add("updated_at")
        else:
            skipped.add("updated_at")

        if skipped:
            log.info(
                "customer update skips unmapped fields",
                extra={"table": mapping.table, "variant": mapping.variant.value, "skipped": sorted(skipped)},
            )
        return UpdatePlan(values=values, applied=frozenset(applied), skipped=frozenset(skipped))
