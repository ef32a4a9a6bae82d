"""
Pydantic models for the customer endpoints.

JSON on the wire is camelCase (tenantName, totalCount, ...), matching what the
browser application consumes; Python attributes stay snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

StatusLiteral = Literal["active", "inactive", "deleted"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -------------------------------
# Customer Schemas
# -------------------------------

class CustomerOut(CamelModel):
    id: str
    tenant_id: Optional[str] = None
    tenant_name: str
    tenant_domain: str
    contact_email: Optional[str] = None
    notes: Optional[str] = None
    status: str
    app_registration: Optional[Dict[str, Any]] = None
    created_at: datetime
    last_assessment_at: Optional[datetime] = None
    total_assessments: int = 0
    updated_at: Optional[datetime] = None


class CustomerListResponse(CamelModel):
    items: List[CustomerOut] = Field(default_factory=list)
    total_count: int = Field(..., ge=0)


class CustomerCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    tenant_name: str = Field(..., min_length=1, max_length=255)
    tenant_domain: str = Field(..., min_length=1, max_length=255)
    tenant_id: Optional[str] = Field(default=None, max_length=255)
    contact_email: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    app_registration: Optional[Dict[str, Any]] = None


class CustomerUpdate(CamelModel):
    """Partial update: only fields present in the request body are written."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    tenant_id: Optional[str] = Field(default=None, max_length=255)
    tenant_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    tenant_domain: Optional[str] = Field(default=None, min_length=1, max_length=255)
    contact_email: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    status: Optional[StatusLiteral] = None
    app_registration: Optional[Dict[str, Any]] = None

    @field_validator("tenant_name", "tenant_domain", "status")
    @classmethod
    def reject_null(cls, v: Optional[str]) -> Optional[str]:
        """Name, domain and status may be omitted but never cleared."""
        if v is None:
            raise ValueError("must not be null")
        return v

    def fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, by_alias=False)


class CustomerUpdateOut(CustomerOut):
    applied_fields: List[str] = Field(default_factory=list)
    skipped_fields: List[str] = Field(default_factory=list)


class AssessmentCompleted(CamelModel):
    completed_at: Optional[datetime] = None
