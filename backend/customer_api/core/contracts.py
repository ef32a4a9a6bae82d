"""
Repository contracts and the records they exchange.

The Protocol defines the operations the API layer needs from customer
storage. Concrete implementations can use SQLAlchemy or in-memory stores
(tests), as long as they satisfy this interface.

Records:
- CustomerRecord: one customer, logical field names
- CustomerPage: one page of customers plus the total matching count
- UpdateResult: updated record plus the applied/skipped field diff
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, FrozenSet, List, Mapping, Optional, Protocol, runtime_checkable

__all__ = [
    "CustomerStatus",
    "CustomerRecord",
    "CustomerPage",
    "UpdateResult",
    "CustomerRepo",
]


class CustomerStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


@dataclass(frozen=True)
class CustomerRecord:
    id: str
    tenant_name: str
    tenant_domain: str
    status: str
    created_at: datetime
    tenant_id: Optional[str] = None
    contact_email: Optional[str] = None
    notes: Optional[str] = None
    app_registration: Optional[dict] = None
    last_assessment_at: Optional[datetime] = None
    total_assessments: int = 0
    updated_at: Optional[datetime] = None

    @property
    def modified_at(self) -> datetime:
        """Latest known modification time (falls back to creation time)."""
        return self.updated_at or self.created_at


@dataclass(frozen=True)
class CustomerPage:
    items: List[CustomerRecord] = field(default_factory=list)
    total_count: int = 0

    @property
    def ids(self) -> List[str]:
        return [c.id for c in self.items]


@dataclass(frozen=True)
class UpdateResult:
    customer: CustomerRecord
    applied_fields: FrozenSet[str] = frozenset()
    skipped_fields: FrozenSet[str] = frozenset()

    @property
    def partial(self) -> bool:
        return bool(self.skipped_fields)


@runtime_checkable
class CustomerRepo(Protocol):
    """
    Contract for customer data access.
    """

    def list(self, *, status: Optional[str] = None, limit: Optional[int] = None, offset: int = 0) -> CustomerPage:
        """Return one page ordered by creation time (newest first), id ascending on ties."""
        raise NotImplementedError()

    def get(self, customer_id: str) -> CustomerRecord:
        """Return one customer or raise CustomerNotFoundError."""
        raise NotImplementedError()

    def get_by_domain(self, tenant_domain: str) -> Optional[CustomerRecord]:
        """Return the customer owning a tenant domain, if any."""
        raise NotImplementedError()

    def get_by_client_id(self, client_id: str) -> Optional[CustomerRecord]:
        """Return the customer whose app registration carries this client id, if any."""
        raise NotImplementedError()

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
        """Create an active customer."""
        raise NotImplementedError()

    def update(self, customer_id: str, fields: Mapping[str, Any]) -> UpdateResult:
        """Apply the mappable subset of fields and report the diff."""
        raise NotImplementedError()

    def soft_delete(self, customer_id: str) -> CustomerRecord:
        """Mark a customer deleted without purging the row."""
        raise NotImplementedError()

    def reactivate(self, customer_id: str) -> CustomerRecord:
        """Explicitly return an inactive or deleted customer to active."""
        raise NotImplementedError()

    def record_assessment(self, customer_id: str, completed_at: Optional[datetime] = None) -> CustomerRecord:
        """Bump the assessment counter and last-assessment timestamp."""
        raise NotImplementedError()
