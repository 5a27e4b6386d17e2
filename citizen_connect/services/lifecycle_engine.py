"""
Lifecycle Engine - service request creation, queries and status changes.

Every request handler goes through here. The engine applies the access
rules, forces server-owned fields (owner, initial status), and delegates
status changes to the store's atomic update with the workflow table as
the guard.

DESIGN PRINCIPLES:
- Citizens create and read their own requests, never change status
- Admins read everything and drive status transitions
- Non-owners get NotFound, not Forbidden, so ids cannot be enumerated
- An attachment is written before the row and removed if the row fails
"""

import logging
import math
from typing import Dict, List, Optional

from citizen_connect.core.errors import Forbidden, NotFound, ValidationError
from citizen_connect.models.service_request import (
    AdminServiceRequestView,
    Pagination,
    Priority,
    RequestFilter,
    RequestPage,
    RequestStats,
    RequestStatus,
    ServiceRequestCreate,
    ServiceRequestRecord,
    ServiceType,
)
from citizen_connect.models.user import Identity, Role
from citizen_connect.services import access_control
from citizen_connect.services.image_storage import ImageStorage, ImageUpload
from citizen_connect.services.status_workflow import StatusWorkflowEngine
from citizen_connect.stores.base import CredentialStore, RequestStore
from citizen_connect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class LifecycleEngine:

    def __init__(
        self,
        request_store: RequestStore,
        image_storage: Optional[ImageStorage] = None,
        owner_directory: Optional[CredentialStore] = None,
        clock: Clock = utc_now,
    ):
        self.request_store = request_store
        self.image_storage = image_storage
        self.owner_directory = owner_directory
        self.workflow = StatusWorkflowEngine()
        self.clock = clock

    # ------------------------------------------------------------------
    # Citizen operations
    # ------------------------------------------------------------------

    def create(
        self,
        identity: Identity,
        payload: ServiceRequestCreate,
        image: Optional[ImageUpload] = None,
    ) -> ServiceRequestRecord:
        """
        Create a pending request owned by the caller.

        Raises:
            ValidationError: missing required fields, unknown category or
                priority, or a rejected image
        """
        identity = access_control.require_identity(identity)
        service_type = self._required(payload.service_type, "service_type")
        description = self._required(payload.description, "description")
        location = self._required(payload.location, "location")

        try:
            service_type = ServiceType(service_type).value
        except ValueError:
            raise ValidationError(f"Unknown service type '{service_type}'")

        priority = (payload.priority or "").strip() or Priority.MEDIUM.value
        try:
            priority = Priority(priority.lower()).value
        except ValueError:
            raise ValidationError(f"Unknown priority '{priority}'")

        exact_location = (payload.exact_location or "").strip() or None

        image_reference = None
        if image is not None:
            if self.image_storage is None:
                raise ValidationError("Image attachments are not enabled")
            image_reference = self.image_storage.save(image)

        try:
            record = self.request_store.create(
                owner_user_id=identity.user_id,
                service_type=service_type,
                description=description,
                location=location,
                exact_location=exact_location,
                priority=priority,
                status=RequestStatus.PENDING.value,
                image_reference=image_reference,
                now=self.clock(),
            )
        except Exception:
            if image_reference is not None:
                logger.warning(f"Request row failed, removing attachment {image_reference}")
                self.image_storage.delete(image_reference)
            raise

        logger.info(f"Service request created: {record.id} by user {identity.user_id}")
        return record

    def list_own(self, identity: Identity) -> List[ServiceRequestRecord]:
        identity = access_control.require_identity(identity)
        return self.request_store.list_by_owner(identity.user_id)

    def get_stats(self, identity: Identity) -> RequestStats:
        """Counts of the caller's own requests by status."""
        identity = access_control.require_identity(identity)
        return RequestStats.from_counts(self.request_store.count_by_status(identity.user_id))

    def get_by_id(self, identity: Identity, request_id: str) -> ServiceRequestRecord:
        """
        Raises:
            NotFound: absent, or present but not readable by the caller
        """
        identity = access_control.require_identity(identity)
        record = self.request_store.get(request_id)
        if record is None or not access_control.can_read_request(identity, record):
            if record is not None:
                logger.info(f"User {identity.user_id} denied read of request {request_id}")
            raise NotFound("Service request not found")
        return record

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def list_all(
        self,
        identity: Identity,
        status_filter: Optional[str] = "all",
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> RequestPage:
        access_control.require_role(identity, Role.ADMIN)
        if page < 1:
            raise ValidationError("page must be 1 or greater")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        status_value = None
        filter_label = "all"
        if status_filter and status_filter.strip().lower() != "all":
            status_value = self.workflow.normalize_status(status_filter).value
            filter_label = status_value

        records, total = self.request_store.list_page(status_value, (page - 1) * page_size, page_size)
        total_pages = math.ceil(total / page_size) if total else 0

        return RequestPage(
            requests=self._with_owners(records),
            pagination=Pagination(
                current_page=page,
                page_size=page_size,
                total_pages=total_pages,
                total_requests=total,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
            filter=RequestFilter(
                status=filter_label,
                showing="all requests" if status_value is None else f"{status_value} requests",
            ),
        )

    def get_admin_stats(self, identity: Identity) -> RequestStats:
        access_control.require_role(identity, Role.ADMIN)
        return RequestStats.from_counts(self.request_store.count_by_status())

    def get_details(self, identity: Identity, request_id: str) -> AdminServiceRequestView:
        access_control.require_role(identity, Role.ADMIN)
        return self._with_owners([self.get_by_id(identity, request_id)])[0]

    def get_allowed_transitions(self, identity: Identity, request_id: str) -> Dict:
        access_control.require_role(identity, Role.ADMIN)
        record = self.get_by_id(identity, request_id)
        return {
            "current_status": record.status.value,
            "allowed_transitions": self.workflow.get_allowed_transitions(record.status.value),
        }

    def update_status(self, identity: Identity, request_id: str, new_status: str) -> ServiceRequestRecord:
        """
        Move a request to new_status if the table allows it.

        Raises:
            Forbidden: caller is not an admin
            ValidationError: unknown status value
            NotFound: no such request
            InvalidTransition: pair not in the table; record unchanged
        """
        access_control.require_role(identity, Role.ADMIN)
        target = self.workflow.normalize_status(new_status)

        def guard(current: ServiceRequestRecord) -> None:
            if not access_control.can_mutate_status(identity, current):
                raise Forbidden("Admin privileges required to change status")
            if current.status != target:
                self.workflow.require_transition(current.status.value, target.value)

        record = self.request_store.update_status(request_id, target, guard, self.clock())
        logger.info(f"Request {request_id} status is now {record.status.value} (admin {identity.user_id})")
        return record

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _with_owners(self, records: List[ServiceRequestRecord]) -> List[AdminServiceRequestView]:
        owners: Dict[str, Optional[object]] = {}
        views = []
        for record in records:
            owner = None
            if self.owner_directory is not None:
                if record.owner_user_id not in owners:
                    owners[record.owner_user_id] = self.owner_directory.get_by_id(record.owner_user_id)
                owner = owners[record.owner_user_id]
            views.append(AdminServiceRequestView(
                **record.model_dump(),
                owner_name=owner.name if owner else None,
                owner_email=owner.email if owner else None,
            ))
        return views

    @staticmethod
    def _required(value: Optional[str], field: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValidationError(
                "Service type, description, and location are required",
                field=field,
            )
        return value
