"""
Customer model (current column generation).

Used to create the table in fresh deployments and tests. Reads and writes go
through the schema adapter, which also supports stores that still expose the
legacy column names (name/display_name/domain/created_date).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from customer_api.db.base import Base


class Customer(Base):
    """
    A tenant under security assessment.
    """

    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("tenant_domain", name="uq_customers_tenant_domain"),
        Index("ix_customers_status", "status"),
        Index("ix_customers_created_at", "created_at"),
    )

    # Opaque UUID text, assigned on insert and never changed
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    tenant_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tenant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    tenant_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # active | inactive | deleted
    status: Mapped[str] = mapped_column(String(50), nullable=False, server_default="active")

    app_registration: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    last_assessment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_assessments: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Customer id={self.id!r} domain={self.tenant_domain!r} status={self.status!r}>"
