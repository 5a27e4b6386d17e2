"""
Admin endpoints - review every request and drive the status workflow.

SCOPE OF ADMIN:
- List and inspect all requests, with the submitting citizen's contact
- Change status along the transition table only
- Aggregate statistics

Admins do not edit request content and do not delete requests.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from citizen_connect.core.container import ServiceContainer
from citizen_connect.core.dependencies import get_container, require_admin
from citizen_connect.models.base import envelope
from citizen_connect.models.service_request import StatusUpdateRequest
from citizen_connect.models.user import Identity
from citizen_connect.services.lifecycle_engine import DEFAULT_PAGE_SIZE

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/requests")
def list_requests(
    page: int = Query(1, description="1-based page number"),
    limit: int = Query(DEFAULT_PAGE_SIZE, description="Page size, 1 to 100"),
    status: Optional[str] = Query("all", description="Status filter, or 'all'"),
    identity: Identity = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    """
    All requests, newest first, paginated.

    Returns:
        requests: rows with owner_name / owner_email joined in
        pagination: currentPage, pageSize, totalPages, totalRequests, hasNext, hasPrev
        filter: the status filter that was applied
    """
    result = container.lifecycle.list_all(identity, status_filter=status, page=page, page_size=limit)
    return envelope(requests=result.requests, pagination=result.pagination, filter=result.filter)


@router.get("/requests/{request_id}")
def get_request(
    request_id: str,
    identity: Identity = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    view = container.lifecycle.get_details(identity, request_id)
    return envelope(request=view)


@router.get("/requests/{request_id}/allowed-transitions")
def get_allowed_transitions(
    request_id: str,
    identity: Identity = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    """Statuses the request can move to from where it is now."""
    result = container.lifecycle.get_allowed_transitions(identity, request_id)
    return envelope(**result)


@router.put("/requests/{request_id}/status")
def update_status(
    request_id: str,
    request: StatusUpdateRequest,
    identity: Identity = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    """
    Change request status.

    Raises:
        400: unknown status or transition not allowed (record unchanged)
        403: caller is not an admin
        404: no such request
    """
    record = container.lifecycle.update_status(identity, request_id, request.status)
    return envelope("Status updated successfully", request=record)


@router.get("/stats")
def get_stats(
    identity: Identity = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    stats = container.lifecycle.get_admin_stats(identity)
    return envelope(stats=stats)
