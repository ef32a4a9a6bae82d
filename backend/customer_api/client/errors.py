"""
Errors raised by the customer API client and the list cache.

- CustomerClientError: base; non-retryable request problems (4xx)
- CustomerNotFound: the API answered 404 for a customer id
- UpstreamUnavailableError: API unreachable or failing (5xx); retryable
- FetchTimeoutError: the request exceeded its time bound; treated like
  UpstreamUnavailableError by the cache
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "CustomerClientError",
    "CustomerNotFound",
    "UpstreamUnavailableError",
    "FetchTimeoutError",
]


class CustomerClientError(Exception):
    """Raised for customer API requests that failed and should not be retried as-is."""

    retryable: bool = False

    def __init__(self, message: str, *, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class CustomerNotFound(CustomerClientError):
    pass


class UpstreamUnavailableError(CustomerClientError):
    retryable = True


class FetchTimeoutError(UpstreamUnavailableError):
    pass
