"""
Shared API router.

- Aggregates sub-routers from customer_api.api.routes.* modules.
- Uses no top-level prefix; each sub-router controls its own path under /api/...

Sub-routers included:
- customer_api.api.routes.customers -> /api/customers
"""

from __future__ import annotations

import importlib
from typing import List

from fastapi import APIRouter

__all__ = ["router", "INCLUDED_MODULES", "ROUTE_MODULES"]

router = APIRouter()

ROUTE_MODULES = [
    "customer_api.api.routes.customers",
]


def _include_subrouters(parent: APIRouter, module_paths: List[str]) -> List[str]:
    """
    Import each route module and include its 'router'.
    Returns the module paths that were included.
    """
    included: List[str] = []
    for module_path in module_paths:
        module = importlib.import_module(module_path)
        sub = getattr(module, "router", None)
        if not isinstance(sub, APIRouter):
            raise TypeError(f"{module_path} does not define an APIRouter named 'router'")
        parent.include_router(sub)
        included.append(module_path)
    return included


INCLUDED_MODULES = _include_subrouters(router, ROUTE_MODULES)
