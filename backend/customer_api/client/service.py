"""
Customer service used by the browser-facing views.

Reads go through CustomerListCache; writes go to the API and then invalidate
every cached list, since any customer change can move it between pages or
status filters.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from customer_api.client.api_client import CustomerApiClient, ListQuery
from customer_api.client.cache import CacheState, CustomerListCache
from customer_api.core.config import get_settings
from customer_api.core.logging import get_logger
from customer_api.schemas.customers import CustomerListResponse, CustomerOut, CustomerUpdateOut

__all__ = ["CustomerService"]

log = get_logger(__name__)


class CustomerService:
    def __init__(
        self,
        client: CustomerApiClient,
        cache: Optional[CustomerListCache[ListQuery, CustomerListResponse]] = None,
    ) -> None:
        self.client = client
        if cache is None:
            settings = get_settings()
            cache = CustomerListCache(
                client.list_customers,
                freshness_seconds=settings.cache_freshness_seconds,
                refresh_ratio=settings.cache_refresh_ratio,
            )
        self.cache = cache

    def on_mount(self, status: Optional[str] = "active", limit: Optional[int] = None, offset: int = 0) -> None:
        """Warm the list a view is about to show."""
        self.cache.prefetch(ListQuery(status=status, limit=limit, offset=offset))

    async def list_customers(
        self, status: Optional[str] = "active", limit: Optional[int] = None, offset: int = 0
    ) -> CustomerListResponse:
        return await self.cache.get(ListQuery(status=status, limit=limit, offset=offset))

    def cache_state(self, status: Optional[str] = "active", limit: Optional[int] = None, offset: int = 0) -> CacheState:
        return self.cache.state(ListQuery(status=status, limit=limit, offset=offset))

    async def get_customer(self, customer_id: str) -> CustomerOut:
        return await self.client.get_customer(customer_id)

    async def get_customer_by_client_id(self, client_id: str) -> CustomerOut:
        return await self.client.get_customer_by_client_id(client_id)

    async def create_customer(self, fields: Mapping[str, Any]) -> CustomerOut:
        customer = await self.client.create_customer(fields)
        self._changed("created", customer.id)
        return customer

    async def update_customer(self, customer_id: str, fields: Mapping[str, Any]) -> CustomerUpdateOut:
        result = await self.client.update_customer(customer_id, fields)
        if result.skipped_fields:
            log.info(
                "customer update partially applied",
                extra={"customer_id": customer_id, "skipped": result.skipped_fields},
            )
        self._changed("updated", customer_id)
        return result

    async def delete_customer(self, customer_id: str) -> CustomerOut:
        customer = await self.client.delete_customer(customer_id)
        self._changed("deleted", customer_id)
        return customer

    async def reactivate_customer(self, customer_id: str) -> CustomerOut:
        customer = await self.client.reactivate_customer(customer_id)
        self._changed("reactivated", customer_id)
        return customer

    async def aclose(self) -> None:
        await self.cache.aclose()
        await self.client.aclose()

    def _changed(self, action: str, customer_id: str) -> None:
        self.cache.invalidate()
        self.client.forget_validators()
        log.debug("customer lists invalidated", extra={"action": action, "customer_id": customer_id})
