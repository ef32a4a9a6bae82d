"""
Customer API routes.

Endpoints:
- GET    /api/customers                        -> paginated list (ETag / Cache-Control, 304 on match)
- POST   /api/customers                        -> create a customer
- GET    /api/customers/by-client-id/{client_id} -> customer owning an app registration
- GET    /api/customers/{customer_id}          -> one customer
- PUT    /api/customers/{customer_id}          -> partial update, reports applied/skipped fields
- DELETE /api/customers/{customer_id}          -> soft delete (status=deleted)
- POST   /api/customers/{customer_id}/reactivate   -> explicit return to active
- POST   /api/customers/{customer_id}/assessments  -> record a completed assessment

Routes are thin: they delegate to a CustomerRepo and return Pydantic schemas.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel

from customer_api.core.contracts import CustomerRecord, CustomerRepo, UpdateResult
from customer_api.core.deps import ListCachePolicy, get_customer_repo, get_list_cache_policy
from customer_api.core.errors import ApiError, NotFoundError
from customer_api.core.http_cache import cache_control_header, if_none_match, list_etag, modification_marker
from customer_api.schemas.customers import (
    AssessmentCompleted,
    CustomerCreate,
    CustomerListResponse,
    CustomerOut,
    CustomerUpdate,
    CustomerUpdateOut,
    StatusLiteral,
)

router = APIRouter(prefix="/api/customers", tags=["customers"])


def _to_out(record: CustomerRecord) -> CustomerOut:
    return CustomerOut.model_validate(record)


def _to_update_out(result: UpdateResult) -> CustomerUpdateOut:
    return CustomerUpdateOut(
        **_to_out(result.customer).model_dump(),
        applied_fields=sorted(to_camel(f) for f in result.applied_fields),
        skipped_fields=sorted(to_camel(f) for f in result.skipped_fields),
    )


@router.get("", response_model=CustomerListResponse)
def list_customers(
    request: Request,
    status_filter: Optional[StatusLiteral] = Query(None, alias="status", description="Filter by status"),
    limit: Optional[int] = Query(None, description="Page size; defaults to 50, clamped into [1, 200]"),
    offset: int = Query(0, description="Rows to skip; negative values count as 0"),
    repo: CustomerRepo = Depends(get_customer_repo),
    policy: ListCachePolicy = Depends(get_list_cache_policy),
) -> Response:
    """
    List customers (paginated), newest first.

    The response carries an ETag over the returned identifiers and a
    modification marker; a matching If-None-Match gets 304 without a body.
    """
    page = repo.list(status=status_filter, limit=limit, offset=offset)
    etag = list_etag(page.ids, modification_marker((c.modified_at for c in page.items), page.total_count))
    headers = {"ETag": etag, "Cache-Control": cache_control_header(policy.max_age)}

    if if_none_match(request.headers.get("if-none-match"), etag):
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

    body = CustomerListResponse(items=[_to_out(c) for c in page.items], total_count=page.total_count)
    return JSONResponse(content=body.model_dump(mode="json", by_alias=True), headers=headers)


@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    repo: CustomerRepo = Depends(get_customer_repo),
) -> CustomerOut:
    """
    Create a new customer. Duplicate tenant domains are rejected with 409.
    """
    try:
        record = repo.create(
            tenant_name=payload.tenant_name,
            tenant_domain=payload.tenant_domain,
            tenant_id=payload.tenant_id,
            contact_email=payload.contact_email,
            notes=payload.notes,
            app_registration=payload.app_registration,
        )
    except ValueError as e:
        raise ApiError(str(e)) from e
    return _to_out(record)


@router.get("/by-client-id/{client_id}", response_model=CustomerOut)
def get_customer_by_client_id(
    client_id: str = Path(..., min_length=1),
    repo: CustomerRepo = Depends(get_customer_repo),
) -> CustomerOut:
    """Look a customer up by the client id of its app registration."""
    record = repo.get_by_client_id(client_id)
    if record is None:
        raise NotFoundError(
            f"No customer registered for client id {client_id}", details={"client_id": client_id}
        )
    return _to_out(record)


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(
    customer_id: str = Path(..., min_length=1),
    repo: CustomerRepo = Depends(get_customer_repo),
) -> CustomerOut:
    return _to_out(repo.get(customer_id))


@router.put("/{customer_id}", response_model=CustomerUpdateOut)
def update_customer(
    customer_id: str = Path(..., min_length=1),
    payload: CustomerUpdate = Body(...),
    repo: CustomerRepo = Depends(get_customer_repo),
) -> CustomerUpdateOut:
    """
    Apply a partial update.

    Requested fields the store has no column for are listed in skippedFields;
    the rest are written and the call still succeeds.
    """
    fields = payload.fields()
    if not fields:
        raise ApiError("No fields to update")
    try:
        result = repo.update(customer_id, fields)
    except ValueError as e:
        raise ApiError(str(e)) from e
    return _to_update_out(result)


@router.delete("/{customer_id}", response_model=CustomerOut)
def delete_customer(
    customer_id: str = Path(..., min_length=1),
    repo: CustomerRepo = Depends(get_customer_repo),
) -> CustomerOut:
    """Soft delete: the record stays and its status becomes 'deleted'."""
    return _to_out(repo.soft_delete(customer_id))


@router.post("/{customer_id}/reactivate", response_model=CustomerOut)
def reactivate_customer(
    customer_id: str = Path(..., min_length=1),
    repo: CustomerRepo = Depends(get_customer_repo),
) -> CustomerOut:
    return _to_out(repo.reactivate(customer_id))


@router.post("/{customer_id}/assessments", response_model=CustomerOut)
def record_assessment(
    customer_id: str = Path(..., min_length=1),
    payload: Optional[AssessmentCompleted] = Body(default=None),
    repo: CustomerRepo = Depends(get_customer_repo),
) -> CustomerOut:
    """Record a completed assessment for the customer."""
    completed_at = payload.completed_at if payload is not None else None
    return _to_out(repo.record_assessment(customer_id, completed_at))
