"""
Async HTTP client for the customer API (httpx, retries via tenacity).

- ListQuery: hashable list request (status, limit, offset); doubles as cache key
- CustomerApiClient: list/get/create/update/delete/reactivate over HTTP

Behavior
--------
- Every request uses a bounded timeout (30s by default).
- Transport errors, timeouts, 5xx, 408 and 429 are retried with exponential
  backoff; other 4xx are raised immediately.
- list_customers() remembers the ETag and page of each query and sends
  If-None-Match; a 304 reuses the remembered page.

Errors
------
Timeouts raise FetchTimeoutError, unreachable/5xx raise
UpstreamUnavailableError, 404 raises CustomerNotFound, other 4xx raise
CustomerClientError.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from customer_api.client.errors import (
    CustomerClientError,
    CustomerNotFound,
    FetchTimeoutError,
    UpstreamUnavailableError,
)
from customer_api.core.config import get_settings
from customer_api.core.logging import get_logger
from customer_api.schemas.customers import CustomerListResponse, CustomerOut, CustomerUpdateOut

__all__ = ["ListQuery", "CustomerApiClient"]

log = get_logger(__name__)

_RETRY_STATUSES = {408, 429}


@dataclass(frozen=True)
class ListQuery:
    status: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0

    def params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"offset": self.offset}
        if self.status:
            params["status"] = self.status
        if self.limit is not None:
            params["limit"] = self.limit
        return params

    def __str__(self) -> str:
        return f"customers:{self.status or 'all'}:{self.offset}:{self.limit if self.limit is not None else 'default'}"


def _error_message(resp: httpx.Response) -> Tuple[str, Optional[str]]:
    try:
        body = resp.json()
        err = body.get("error") or {}
        return str(err.get("message") or resp.reason_phrase), err.get("code")
    except (ValueError, AttributeError):
        return (resp.text or resp.reason_phrase)[:200], None


class CustomerApiClient:
    """Client for /api/customers built on httpx.AsyncClient."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = float(timeout if timeout is not None else settings.client_timeout_seconds)
        self.max_retries = int(max_retries if max_retries is not None else settings.client_max_retries)
        self.backoff_base = float(backoff_base)
        self._sleep = sleep
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=transport)
        self._list_validators: Dict[ListQuery, Tuple[str, CustomerListResponse]] = {}

    async def __aenter__(self) -> "CustomerApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -------------------------------
    # Transport with retry
    # -------------------------------

    async def _attempt(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """One HTTP round trip, with failures mapped onto the client error types."""
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"{method} {url} timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(
                f"Failed to reach customer API at {self.base_url}: {e.__class__.__name__}"
            ) from e

        if resp.status_code < 400:
            return resp
        message, code = _error_message(resp)
        if resp.status_code >= 500 or resp.status_code in _RETRY_STATUSES:
            raise UpstreamUnavailableError(message, status_code=resp.status_code, code=code)
        if resp.status_code == 404:
            raise CustomerNotFound(message, status_code=404, code=code)
        raise CustomerClientError(message, status_code=resp.status_code, code=code)

    def _log_retry(self, method: str, url: str) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome is not None else None
            log.warning(
                "customer API request failed, retrying",
                extra={
                    "method": method,
                    "url": url,
                    "attempt": state.attempt_number,
                    "delay": state.next_action.sleep if state.next_action is not None else None,
                    "error": str(exc),
                },
            )

        return before_sleep

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_base),
            retry=retry_if_exception_type(UpstreamUnavailableError),
            sleep=self._sleep,
            before_sleep=self._log_retry(method, url),
            reraise=True,
        )
        try:
            return await retrying(self._attempt, method, url, **kwargs)
        except UpstreamUnavailableError as e:
            log.error(
                "customer API request failed",
                extra={"method": method, "url": url, "attempts": self.max_retries, "error": e.message},
            )
            raise

    # -------------------------------
    # Customer operations
    # -------------------------------

    async def list_customers(self, query: ListQuery = ListQuery()) -> CustomerListResponse:
        headers: Dict[str, str] = {}
        remembered = self._list_validators.get(query)
        if remembered is not None:
            headers["If-None-Match"] = remembered[0]

        resp = await self._request("GET", "/api/customers", params=query.params(), headers=headers)
        if resp.status_code == 304:
            if remembered is None:
                raise CustomerClientError("Unexpected 304 for an unconditional request", status_code=304)
            log.debug("customer list not modified", extra={"query": str(query)})
            return remembered[1]

        page = CustomerListResponse.model_validate(resp.json())
        etag = resp.headers.get("etag")
        if etag:
            self._list_validators[query] = (etag, page)
        return page

    async def get_customer(self, customer_id: str) -> CustomerOut:
        resp = await self._request("GET", f"/api/customers/{customer_id}")
        return CustomerOut.model_validate(resp.json())

    async def get_customer_by_client_id(self, client_id: str) -> CustomerOut:
        resp = await self._request("GET", f"/api/customers/by-client-id/{client_id}")
        return CustomerOut.model_validate(resp.json())

    async def create_customer(self, fields: Mapping[str, Any]) -> CustomerOut:
        resp = await self._request("POST", "/api/customers", json=dict(fields))
        return CustomerOut.model_validate(resp.json())

    async def update_customer(self, customer_id: str, fields: Mapping[str, Any]) -> CustomerUpdateOut:
        resp = await self._request("PUT", f"/api/customers/{customer_id}", json=dict(fields))
        return CustomerUpdateOut.model_validate(resp.json())

    async def delete_customer(self, customer_id: str) -> CustomerOut:
        resp = await self._request("DELETE", f"/api/customers/{customer_id}")
        return CustomerOut.model_validate(resp.json())

    async def reactivate_customer(self, customer_id: str) -> CustomerOut:
        resp = await self._request("POST", f"/api/customers/{customer_id}/reactivate")
        return CustomerOut.model_validate(resp.json())

    async def record_assessment(self, customer_id: str, completed_at: Optional[datetime] = None) -> CustomerOut:
        body = {"completedAt": completed_at.isoformat()} if completed_at is not None else None
        resp = await self._request("POST", f"/api/customers/{customer_id}/assessments", json=body)
        return CustomerOut.model_validate(resp.json())

    def forget_validators(self) -> None:
        """Drop remembered ETags so the next list request is unconditional."""
        self._list_validators.clear()
