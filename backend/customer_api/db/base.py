"""
SQLAlchemy declarative base and model registration.

- Base: Declarative base class for the ORM models (current schema generation).
- import_all_models(): imports every module under customer_api.models so their
  tables are registered on Base.metadata before create_all().
"""

from __future__ import annotations

import importlib
import pkgutil
from typing import List

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

__all__ = ["Base", "import_all_models"]


# Naming conventions for constraints & indexes
_NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=_NAMING_CONVENTION)


def import_all_models() -> List[str]:
    """
    Import all modules under customer_api.models.

    Returns:
        The fully-qualified module names that were imported.
    """
    models_pkg = importlib.import_module("customer_api.models")
    imported: list[str] = []
    prefix = models_pkg.__name__ + "."
    for _finder, name, _ispkg in pkgutil.walk_packages(models_pkg.__path__, prefix):
        importlib.import_module(name)
        imported.append(name)
    return imported
