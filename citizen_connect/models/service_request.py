"""
Pydantic models for citizen service requests.
These models handle validation for submission, status updates and listings.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class ServiceType(str, Enum):
    """Categories offered on the submission form."""
    ROAD_REPAIR = "road_repair"
    WASTE_MANAGEMENT = "waste_management"
    WATER_SUPPLY = "water_supply"
    ELECTRICITY = "electricity"
    PUBLIC_SAFETY = "public_safety"
    NOISE_COMPLAINT = "noise_complaint"
    PARK_MAINTENANCE = "park_maintenance"
    STREET_LIGHT = "street_light"
    DRAINAGE = "drainage"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RequestStatus(str, Enum):
    """
    Canonical status vocabulary. "resolved" is accepted as an input alias
    for COMPLETED (see status_workflow.normalize_status) but never stored.
    """
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ServiceRequestCreate(BaseModel):
    """
    Fields a citizen provides when submitting a request.
    Owner and status are not part of the payload; the engine sets them.
    """
    service_type: str = Field(..., description="One of ServiceType")
    description: str = Field(..., description="What the citizen observed")
    location: str = Field(..., description="Free-text location")
    exact_location: Optional[str] = Field(None, description="Optional geo link or coordinates")
    priority: Optional[str] = Field(None, description="One of Priority, defaults to medium")

    class Config:
        extra = "ignore"


class ServiceRequestRecord(BaseModel):
    """
    Stored service request as returned by a RequestStore.
    """
    id: str = Field(..., description="Request document ID")
    owner_user_id: str
    service_type: ServiceType
    description: str
    location: str
    exact_location: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    status: RequestStatus = RequestStatus.PENDING
    image_reference: Optional[str] = Field(None, description="Relative path under the uploads route")
    created_at: datetime
    updated_at: datetime


class AdminServiceRequestView(ServiceRequestRecord):
    """Admin listing row with the owner's contact details joined in."""
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., min_length=1, description="Target status")


class Pagination(BaseModel):
    current_page: int = Field(..., alias="currentPage")
    page_size: int = Field(..., alias="pageSize")
    total_pages: int = Field(..., alias="totalPages")
    total_requests: int = Field(..., alias="totalRequests")
    has_next: bool = Field(..., alias="hasNext")
    has_prev: bool = Field(..., alias="hasPrev")

    class Config:
        populate_by_name = True


class RequestFilter(BaseModel):
    status: str = "all"
    showing: str = "all requests"


class RequestPage(BaseModel):
    requests: List[AdminServiceRequestView]
    pagination: Pagination
    filter: RequestFilter


class RequestStats(BaseModel):
    """Counts per status. Always contains every canonical status."""
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict, alias="byStatus")

    class Config:
        populate_by_name = True

    @classmethod
    def from_counts(cls, counts: Dict[str, int]) -> "RequestStats":
        by_status = {status.value: int(counts.get(status.value, 0)) for status in RequestStatus}
        return cls(total=sum(by_status.values()), by_status=by_status)
