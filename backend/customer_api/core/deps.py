"""
Dependency wiring for the customer repository and the list cache policy.

This module exposes factory functions that construct concrete implementations
behind the CustomerRepo Protocol. It must not contain business logic.

Provided factories:
- get_schema_adapter: process-wide SchemaAdapter (column mapping resolved once)
- get_customer_repo: SqlAlchemyCustomerRepo bound to the request session
- get_list_cache_policy: Cache-Control lifetime for list responses
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from customer_api.core.config import get_settings
from customer_api.core.contracts import CustomerRepo
from customer_api.db.session import get_db
from customer_api.repos.schema_adapter import SchemaAdapter

__all__ = [
    "get_schema_adapter",
    "get_customer_repo",
    "ListCachePolicy",
    "get_list_cache_policy",
]


@lru_cache(maxsize=1)
def get_schema_adapter() -> SchemaAdapter:
    """Provide the SchemaAdapter shared by every request in this process."""
    return SchemaAdapter(get_settings().customers_table)


def get_customer_repo(
    db: Session = Depends(get_db),
    adapter: SchemaAdapter = Depends(get_schema_adapter),
) -> CustomerRepo:
    """Provide a CustomerRepo bound to the current DB session."""
    from customer_api.repos.customer_repo import SqlAlchemyCustomerRepo
    return SqlAlchemyCustomerRepo(db, adapter)  # type: ignore[return-value]


@dataclass(frozen=True)
class ListCachePolicy:
    max_age: int = 60


def get_list_cache_policy() -> ListCachePolicy:
    return ListCachePolicy(max_age=get_settings().list_cache_max_age)
