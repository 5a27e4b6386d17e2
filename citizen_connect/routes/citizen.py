"""
Citizen endpoints - submit service requests and follow their progress.

A citizen only ever sees their own requests. Status is read-only here;
changes go through the admin routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from citizen_connect.core.container import ServiceContainer
from citizen_connect.core.dependencies import get_container, get_identity
from citizen_connect.models.base import envelope
from citizen_connect.models.service_request import ServiceRequestCreate
from citizen_connect.models.user import Identity
from citizen_connect.services.image_storage import ImageUpload

router = APIRouter(prefix="/citizen", tags=["Citizen"])


@router.post("/requests", status_code=status.HTTP_201_CREATED)
async def create_request(
    service_type: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    exact_location: Optional[str] = Form(None),
    priority: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_identity),
    container: ServiceContainer = Depends(get_container),
):
    """
    Submit a service request (multipart/form-data).

    Form fields:
    - service_type, description, location: required
    - exact_location, priority: optional (priority defaults to medium)
    - image: optional image attachment

    The request is always created as pending and owned by the caller.
    """
    payload = ServiceRequestCreate(
        service_type=service_type or "",
        description=description or "",
        location=location or "",
        exact_location=exact_location,
        priority=priority,
    )

    upload = None
    if image is not None and image.filename:
        upload = ImageUpload(
            filename=image.filename,
            content_type=image.content_type,
            data=await image.read(),
        )

    # Store write and image file I/O run in the threadpool
    record = await run_in_threadpool(container.lifecycle.create, identity, payload, upload)
    return envelope("Service request submitted successfully", request=record)


@router.get("/requests")
def list_requests(
    identity: Identity = Depends(get_identity),
    container: ServiceContainer = Depends(get_container),
):
    """The caller's own requests, newest first."""
    records = container.lifecycle.list_own(identity)
    return envelope(requests=records)


@router.get("/requests/{request_id}")
def get_request(
    request_id: str,
    identity: Identity = Depends(get_identity),
    container: ServiceContainer = Depends(get_container),
):
    record = container.lifecycle.get_by_id(identity, request_id)
    return envelope(request=record)


@router.get("/stats")
def get_stats(
    identity: Identity = Depends(get_identity),
    container: ServiceContainer = Depends(get_container),
):
    """Counts of the caller's requests per status."""
    stats = container.lifecycle.get_stats(identity)
    return envelope(stats=stats)
