"""
SQLAlchemy-based Customer repository.

Operations:
- list(status, limit, offset): one page plus total count in a single query
- get(customer_id) / get_by_domain(domain) / get_by_client_id(client_id)
- create(...): new active customer with a generated UUID
- update(customer_id, fields): partial update through the schema adapter
- soft_delete / reactivate: status changes (rows are never purged)
- record_assessment(customer_id, completed_at): counter + timestamp bump

All column access goes through the ColumnMapping resolved by SchemaAdapter, so
the same code serves stores with legacy or current column names.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from sqlalchemy import JSON, func, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from customer_api.core.config import get_settings
from customer_api.core.contracts import CustomerPage, CustomerRecord, CustomerStatus, UpdateResult
from customer_api.core.errors import ConflictError, CustomerNotFoundError, StoreUnavailableError
from customer_api.core.logging import get_logger
from customer_api.repos.schema_adapter import ColumnMapping, SchemaAdapter

__all__ = ["SqlAlchemyCustomerRepo", "clamp_limit"]

log = get_logger(__name__)

T = TypeVar("T")

_TOTAL = "_total_count"

# Driver messages that mean "the column set is not what we resolved"
_COLUMN_ERROR_MARKERS = (
    "no such column",
    "has no column named",
    "unknown column",
    "invalid column name",
    "does not exist",
)

_STATUSES = {s.value for s in CustomerStatus}

_NOT_NULL_FIELDS = ("tenant_name", "tenant_domain", "status")


def clamp_limit(limit: Optional[int], *, default: int, maximum: int) -> int:
    """Default when unspecified, clamp into [1, maximum] otherwise."""
    if limit is None:
        return default
    return max(1, min(int(limit), maximum))


def _is_column_error(exc: DBAPIError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _COLUMN_ERROR_MARKERS)


def _as_dict(value: Any) -> Optional[dict]:
    if value is None or isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = json.loads(value)
        except ValueError:
            return {"reference": value}
        return parsed if isinstance(parsed, dict) else {"reference": parsed}
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SqlAlchemyCustomerRepo:
    """
    Concrete Customer repository using SQLAlchemy Core over a reflected table.

    Expects a Session provided by the caller (e.g., FastAPI dependency) and the
    process-wide SchemaAdapter.
    """

    def __init__(
        self,
        session: Session,
        adapter: SchemaAdapter,
        *,
        default_limit: Optional[int] = None,
        max_limit: Optional[int] = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not isinstance(session, Session):
            raise TypeError("session must be an instance of sqlalchemy.orm.Session")
        settings = get_settings()
        self.session = session
        self.adapter = adapter
        self.default_limit = default_limit or settings.customers_default_limit
        self.max_limit = max_limit or settings.customers_max_limit
        self._now = now

    # -------------------------------------------------
    # Plumbing
    # -------------------------------------------------

    def _mapping(self) -> ColumnMapping:
        return self.adapter.resolve(self.session.connection())

    def _run(self, op: Callable[[ColumnMapping], T]) -> T:
        """
        Run op against the resolved mapping.

        Mapping resolution runs inside the guard too: a store that cannot be
        reached or reflected fails like any other query.
        A column error means the store changed under us: re-resolve once and
        retry. Any other driver failure surfaces as StoreUnavailableError.
        """
        table = self.adapter.table
        for attempt in (1, 2):
            try:
                return op(self._mapping())
            except (OperationalError, ProgrammingError) as exc:
                self.session.rollback()
                if attempt == 1 and _is_column_error(exc):
                    log.warning(
                        "customer column set changed, re-resolving",
                        extra={"table": table, "error": str(exc.orig)},
                    )
                    self.adapter.invalidate()
                    continue
                log.error("customer store unavailable", extra={"table": table, "error": str(exc.orig)})
                raise StoreUnavailableError("Customer store unavailable") from exc
            except IntegrityError:
                self.session.rollback()
                raise
            except DBAPIError as exc:
                self.session.rollback()
                log.error("customer store unavailable", extra={"table": table, "error": str(exc.orig)})
                raise StoreUnavailableError("Customer store unavailable") from exc
        raise StoreUnavailableError("Customer store unavailable")  # pragma: no cover

    @staticmethod
    def _select_columns(mapping: ColumnMapping) -> list:
        t = mapping.table_obj
        return [t.c[physical].label(logical) for logical, physical in mapping.columns.items()]

    @staticmethod
    def _to_record(row: Mapping[str, Any]) -> CustomerRecord:
        return CustomerRecord(
            id=str(row["id"]),
            tenant_name=row["tenant_name"],
            tenant_domain=row["tenant_domain"],
            status=row.get("status") or CustomerStatus.ACTIVE.value,
            created_at=row["created_at"],
            tenant_id=row.get("tenant_id"),
            contact_email=row.get("contact_email"),
            notes=row.get("notes"),
            app_registration=_as_dict(row.get("app_registration")),
            last_assessment_at=row.get("last_assessment_at"),
            total_assessments=int(row.get("total_assessments") or 0),
            updated_at=row.get("updated_at"),
        )

    def _fetch_one(self, mapping: ColumnMapping, customer_id: str) -> Optional[CustomerRecord]:
        t = mapping.table_obj
        stmt = select(*self._select_columns(mapping)).where(t.c[mapping.physical("id")] == str(customer_id))
        row = self.session.execute(stmt).mappings().first()
        return self._to_record(row) if row is not None else None

    def _status_filter(self, mapping: ColumnMapping, status: Optional[str]):
        col = mapping.table_obj.c[mapping.physical("status")]
        if status:
            return col == status
        return or_(col.is_(None), col != CustomerStatus.DELETED.value)

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------

    def list(self, *, status: Optional[str] = None, limit: Optional[int] = None, offset: int = 0) -> CustomerPage:
        """
        Return at most `limit` customers, newest first, plus the total count.

        The total rides along as a window column so a page costs one query.
        Only a page past the end (no rows to carry the window value) needs a
        separate count.
        """
        limit = clamp_limit(limit, default=self.default_limit, maximum=self.max_limit)
        offset = max(0, int(offset or 0))

        def op(mapping: ColumnMapping) -> CustomerPage:
            t = mapping.table_obj
            where = self._status_filter(mapping, status)
            stmt = (
                select(*self._select_columns(mapping), func.count().over().label(_TOTAL))
                .where(where)
                .order_by(t.c[mapping.physical("created_at")].desc(), t.c[mapping.physical("id")].asc())
                .limit(limit)
                .offset(offset)
            )
            rows = self.session.execute(stmt).mappings().all()
            if rows:
                total = int(rows[0][_TOTAL])
            elif offset == 0:
                total = 0
            else:
                total = int(self.session.execute(select(func.count()).select_from(t).where(where)).scalar_one())
            return CustomerPage(items=[self._to_record(r) for r in rows], total_count=total)

        return self._run(op)

    def get(self, customer_id: str) -> CustomerRecord:
        record = self._run(lambda m: self._fetch_one(m, customer_id))
        if record is None:
            raise CustomerNotFoundError(str(customer_id))
        return record

    def get_by_domain(self, tenant_domain: str) -> Optional[CustomerRecord]:
        if not isinstance(tenant_domain, str) or not tenant_domain.strip():
            return None

        def op(mapping: ColumnMapping) -> Optional[CustomerRecord]:
            col = mapping.table_obj.c[mapping.physical("tenant_domain")]
            stmt = select(*self._select_columns(mapping)).where(
                func.lower(col) == tenant_domain.strip().lower()
            )
            row = self.session.execute(stmt.limit(1)).mappings().first()
            return self._to_record(row) if row is not None else None

        return self._run(op)

    def get_by_client_id(self, client_id: str) -> Optional[CustomerRecord]:
        """
        Return the customer whose app registration carries this client id.

        JSON columns are filtered in SQL; text columns (older stores) are
        narrowed with LIKE and checked after parsing.
        """
        if not isinstance(client_id, str) or not client_id.strip():
            return None
        client_id = client_id.strip()

        def op(mapping: ColumnMapping) -> Optional[CustomerRecord]:
            if not mapping.has("app_registration"):
                return None
            col = mapping.table_obj.c[mapping.physical("app_registration")]
            base = select(*self._select_columns(mapping))
            if isinstance(col.type, JSON):
                row = self.session.execute(
                    base.where(col["clientId"].as_string() == client_id).limit(1)
                ).mappings().first()
                return self._to_record(row) if row is not None else None
            rows = self.session.execute(base.where(col.contains(client_id))).mappings().all()
            for row in rows:
                record = self._to_record(row)
                if (record.app_registration or {}).get("clientId") == client_id:
                    return record
            return None

        return self._run(op)

    # -------------------------------------------------
    # Writes
    # -------------------------------------------------

    def create(
        self,
        *,
        tenant_name: str,
        tenant_domain: str,
        tenant_id: Optional[str] = None,
        contact_email: Optional[str] = None,
        notes: Optional[str] = None,
        app_registration: Optional[dict] = None,
    ) -> CustomerRecord:
        if not isinstance(tenant_name, str) or not tenant_name.strip():
            raise ValueError("tenant_name must be a non-empty string")
        if not isinstance(tenant_domain, str) or not tenant_domain.strip():
            raise ValueError("tenant_domain must be a non-empty string")

        domain = tenant_domain.strip().lower()
        if self.get_by_domain(domain) is not None:
            raise ConflictError("Customer with this domain already exists", details={"tenant_domain": domain})

        now = self._now()
        logical: Dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "tenant_id": tenant_id,
            "tenant_name": tenant_name.strip(),
            "tenant_domain": domain,
            "contact_email": contact_email,
            "notes": notes,
            "status": CustomerStatus.ACTIVE.value,
            "app_registration": app_registration,
            "created_at": now,
            "total_assessments": 0,
            "updated_at": now,
        }

        def op(mapping: ColumnMapping) -> str:
            values = {mapping.physical(k): v for k, v in logical.items() if mapping.has(k)}
            self.session.execute(mapping.table_obj.insert().values(**values))
            self.session.commit()
            return logical["id"]

        try:
            customer_id = self._run(op)
        except IntegrityError as exc:
            raise ConflictError(
                "Customer creation failed due to uniqueness constraint", details={"tenant_domain": domain}
            ) from exc
        log.info("customer created", extra={"customer_id": customer_id, "tenant_domain": domain})
        return self.get(customer_id)

    def _apply(self, customer_id: str, fields: Mapping[str, Any]) -> UpdateResult:
        """Plan and execute one UPDATE for the mappable subset of fields."""

        def op(mapping: ColumnMapping) -> UpdateResult:
            plan = self.adapter.plan_update(mapping, fields)
            t = mapping.table_obj
            id_col = t.c[mapping.physical("id")]
            if plan.values:
                result = self.session.execute(update(t).where(id_col == str(customer_id)).values(**plan.values))
                if result.rowcount == 0:
                    self.session.rollback()
                    raise CustomerNotFoundError(str(customer_id))
                self.session.commit()
            record = self._fetch_one(mapping, customer_id)
            if record is None:
                raise CustomerNotFoundError(str(customer_id))
            return UpdateResult(customer=record, applied_fields=plan.applied, skipped_fields=plan.skipped)

        try:
            return self._run(op)
        except IntegrityError as exc:
            raise ConflictError("Customer update failed due to uniqueness constraint") from exc

    def update(self, customer_id: str, fields: Mapping[str, Any]) -> UpdateResult:
        """
        Apply a partial update.

        Fields the store has no column for are reported in skipped_fields and
        never abort the write of the others. A generic update may not move a
        customer back to active; that takes reactivate().
        """
        fields = dict(fields)
        for name in _NOT_NULL_FIELDS:
            if name in fields and fields[name] is None:
                raise ValueError(f"{name} cannot be null")
        new_status = fields.get("status")
        if new_status is not None:
            if new_status not in _STATUSES:
                raise ValueError(f"invalid status '{new_status}'")
            current = self.get(customer_id)
            if new_status == CustomerStatus.ACTIVE.value and current.status != CustomerStatus.ACTIVE.value:
                raise ConflictError(
                    "Customer is not active; use reactivate to restore it",
                    details={"customer_id": str(customer_id), "status": current.status},
                )
        if "tenant_domain" in fields and isinstance(fields["tenant_domain"], str):
            fields["tenant_domain"] = fields["tenant_domain"].strip().lower()

        result = self._apply(customer_id, fields)
        log.info(
            "customer updated",
            extra={
                "customer_id": str(customer_id),
                "applied": sorted(result.applied_fields),
                "skipped": sorted(result.skipped_fields),
            },
        )
        return result

    def soft_delete(self, customer_id: str) -> CustomerRecord:
        result = self._apply(customer_id, {"status": CustomerStatus.DELETED.value})
        log.info("customer soft-deleted", extra={"customer_id": str(customer_id)})
        return result.customer

    def reactivate(self, customer_id: str) -> CustomerRecord:
        current = self.get(customer_id)
        if current.status == CustomerStatus.ACTIVE.value:
            return current
        result = self._apply(customer_id, {"status": CustomerStatus.ACTIVE.value})
        log.info("customer reactivated", extra={"customer_id": str(customer_id), "previous": current.status})
        return result.customer

    def record_assessment(self, customer_id: str, completed_at: Optional[datetime] = None) -> CustomerRecord:
        """
        Mark an assessment as completed: last-assessment timestamp and an
        atomic counter increment in the same UPDATE.
        """
        stamp = completed_at or self._now()

        def op(mapping: ColumnMapping) -> CustomerRecord:
            t = mapping.table_obj
            values: Dict[str, Any] = {}
            if mapping.has("last_assessment_at"):
                values[mapping.physical("last_assessment_at")] = stamp
            if mapping.has("total_assessments"):
                counter = t.c[mapping.physical("total_assessments")]
                values[mapping.physical("total_assessments")] = func.coalesce(counter, 0) + 1
            if mapping.has("updated_at"):
                values[mapping.physical("updated_at")] = self._now()
            if values:
                result = self.session.execute(
                    update(t).where(t.c[mapping.physical("id")] == str(customer_id)).values(**values)
                )
                if result.rowcount == 0:
                    self.session.rollback()
                    raise CustomerNotFoundError(str(customer_id))
                self.session.commit()
            record = self._fetch_one(mapping, customer_id)
            if record is None:
                raise CustomerNotFoundError(str(customer_id))
            return record

        record = self._run(op)
        log.info(
            "customer assessment recorded",
            extra={"customer_id": str(customer_id), "total_assessments": record.total_assessments},
        )
        return record
