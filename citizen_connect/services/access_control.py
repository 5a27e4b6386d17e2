"""
Access control predicates.

Pure functions over a resolved Identity and a target resource. No store
access and no side effects. Missing identity is Unauthorized; a valid
identity lacking privilege is Forbidden. The two are never merged.
"""

import logging
from typing import Optional

from citizen_connect.core.errors import Forbidden, Unauthorized
from citizen_connect.models.service_request import ServiceRequestRecord
from citizen_connect.models.user import Identity, Role

logger = logging.getLogger(__name__)


def require_identity(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise Unauthorized("Access token required")
    return identity


def can_read_request(identity: Identity, request: ServiceRequestRecord) -> bool:
    """Admins read everything; citizens read only what they own."""
    return identity.role == Role.ADMIN or identity.user_id == request.owner_user_id


def can_mutate_status(identity: Identity, request: ServiceRequestRecord) -> bool:
    """Only admins transition status. Ownership grants no mutation rights."""
    return identity.role == Role.ADMIN


def require_role(identity: Optional[Identity], role: Role) -> Identity:
    """
    Gate for admin-only operations (stats, list-all, details, status update).

    Raises:
        Unauthorized: no identity
        Forbidden: identity holds a different role
    """
    identity = require_identity(identity)
    if identity.role != role:
        logger.info(f"Role check failed for user {identity.user_id}: has {identity.role.value}, needs {role.value}")
        raise Forbidden(
            f"{role.value.capitalize()} privileges required to access this resource",
            your_role=identity.role.value,
            required_role=role.value,
        )
    return identity
