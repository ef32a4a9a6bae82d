import os
import sys

import httpx
import pytest

# Ensure the 'backend' directory is on sys.path so imports work from repo root
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from customer_api.client.api_client import CustomerApiClient  # noqa: E402
from customer_api.client.cache import CacheState, CustomerListCache  # noqa: E402
from customer_api.client.service import CustomerService  # noqa: E402
from tests.fakes import ManualClock  # noqa: E402


class _FakeApi:
    """Tiny HTTP backend: one customer whose name can change."""

    def __init__(self) -> None:
        self.name = "Contoso"
        self.list_requests = []

    def customer(self) -> dict:
        return {
            "id": "c1",
            "tenantName": self.name,
            "tenantDomain": "contoso.com",
            "status": "active",
            "createdAt": "2024-01-01T00:00:00Z",
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == "/api/customers":
            self.list_requests.append(request)
            return httpx.Response(200, json={"items": [self.customer()], "totalCount": 1}, headers={"ETag": f'"{self.name}"'})
        if request.method == "PUT" and request.url.path == "/api/customers/c1":
            self.name = "Contoso Ltd"
            return httpx.Response(200, json=dict(self.customer(), appliedFields=["tenantName"], skippedFields=[]))
        return httpx.Response(404, json={"error": {"code": "not_found", "message": "nope", "details": {}}})


def _service(api: _FakeApi, clock: ManualClock) -> CustomerService:
    client = CustomerApiClient(base_url="http://customers.test", transport=httpx.MockTransport(api))
    cache = CustomerListCache(client.list_customers, freshness_seconds=300, refresh_ratio=0.8, clock=clock)
    return CustomerService(client, cache)


@pytest.mark.asyncio
async def test_mount_prefetch_then_reads_hit_cache():
    api, clock = _FakeApi(), ManualClock()
    service = _service(api, clock)
    try:
        service.on_mount()
        assert service.cache_state() is CacheState.REFRESHING
        await service.cache.drain()

        page = await service.list_customers()
        again = await service.list_customers()

        assert page.items[0].tenant_name == "Contoso"
        assert again is page
        assert len(api.list_requests) == 1
        assert api.list_requests[0].url.params["status"] == "active"
    finally:
        await service.aclose()


@pytest.mark.asyncio
async def test_update_invalidates_cached_lists():
    api, clock = _FakeApi(), ManualClock()
    service = _service(api, clock)
    try:
        await service.list_customers()
        result = await service.update_customer("c1", {"tenantName": "Contoso Ltd"})
        assert result.applied_fields == ["tenantName"]
        assert service.cache_state() is CacheState.EMPTY

        page = await service.list_customers()

        assert page.items[0].tenant_name == "Contoso Ltd"
        assert len(api.list_requests) == 2
        # validators were dropped along with the cached lists
        assert "if-none-match" not in api.list_requests[1].headers
    finally:
        await service.aclose()
